"""
Voucher entry validation -- pure functions, zero I/O.

Responsibility:
    Decides whether a set of entries may form a voucher: at least two legs,
    strictly positive amounts, and debit total equal to credit total when
    both are rounded to two decimal places.

Failure modes:
    - ValidationError for structurally malformed entries.
    - UnbalancedVoucherError carrying both totals and the difference.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import EntryLine
from ledger_kernel.exceptions import UnbalancedVoucherError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import EntryType

logger = get_logger("domain.validation")

MIN_ENTRIES = 2


@dataclass(frozen=True)
class EntryTotals:
    debit_total: Decimal
    credit_total: Decimal

    @property
    def gross_amount(self) -> Decimal:
        return self.debit_total + self.credit_total

    @property
    def is_balanced(self) -> bool:
        return round_money(self.debit_total) == round_money(self.credit_total)


def compute_totals(entries: Iterable[EntryLine]) -> EntryTotals:
    """Sum debit and credit legs without rounding."""
    debit = ZERO
    credit = ZERO
    for entry in entries:
        if entry.entry_type == EntryType.DR:
            debit += entry.amount
        else:
            credit += entry.amount
    return EntryTotals(debit_total=debit, credit_total=credit)


def validate_entries(entries: Iterable[EntryLine]) -> EntryTotals:
    """
    Validate a voucher's entries and return their totals.

    Preconditions: entries come from EntryLine.from_mapping or the store.
    Postconditions: returned totals are balanced at two decimals.

    Raises:
        ValidationError: fewer than two entries, or a non-positive amount.
        UnbalancedVoucherError: debit and credit totals differ.
    """
    entries = tuple(entries)
    if len(entries) < MIN_ENTRIES:
        raise ValidationError(
            "A voucher needs at least 2 entries", field="entries"
        )

    for index, entry in enumerate(entries):
        if entry.amount <= 0:
            raise ValidationError(
                f"entries[{index}].amount must be greater than zero",
                field=f"entries[{index}].amount",
            )
        if entry.entry_type not in (EntryType.DR, EntryType.CR):
            raise ValidationError(
                f"entries[{index}].entry_type must be DR or CR",
                field=f"entries[{index}].entry_type",
            )

    totals = compute_totals(entries)
    if not totals.is_balanced:
        logger.warning(
            "voucher_unbalanced",
            extra={
                "debit_total": str(totals.debit_total),
                "credit_total": str(totals.credit_total),
            },
        )
        raise UnbalancedVoucherError(
            debit_total=round_money(totals.debit_total),
            credit_total=round_money(totals.credit_total),
        )
    return totals
