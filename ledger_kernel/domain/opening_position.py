"""
Opening position arithmetic and naming heuristics -- pure, zero I/O.

Responsibility:
    - Infer the DR/CR side of opening lines that do not state one.
    - Choose a reporting category for a group known only by name.
    - Total the submission (inventory value rolls into the debit side) and
      reject it when debits and credits differ beyond the tolerance.
    - Derive account codes and product SKUs from names.

The name heuristics are a documented convenience, not a semantic
guarantee: a group called "Capital Account" is treated as equity because
its name says so.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import InventoryItem, OpeningBalanceLine
from ledger_kernel.exceptions import OpeningPositionImbalanceError, ValidationError
from ledger_kernel.models.account import SYSTEM_GROUPS, EntryType, GroupCategory

DEFAULT_TOLERANCE = Decimal("0.01")
MIN_OPENING_POSTINGS = 2

_EQUITY_WORDS = ("capital", "equity", "reserve", "surplus")
_LIABILITY_WORDS = (
    "liabilit",
    "loan",
    "payable",
    "creditor",
    "provision",
    "overdraft",
    "duties",
)
_FIXED_ASSET_WORDS = (
    "fixed asset",
    "property",
    "plant",
    "equipment",
    "machinery",
    "furniture",
    "vehicle",
    "building",
)
_INCOME_WORDS = ("income", "revenue", "sales")
_EXPENSE_WORDS = ("expense", "purchase", "cost")

_CREDIT_WORDS = _EQUITY_WORDS + _LIABILITY_WORDS


def _mentions(text: str, words: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in words)


def infer_entry_type(group_name: str, ledger_name: str = "") -> EntryType:
    """Capital, equity and liability sounding names default to CR, else DR."""
    if _mentions(group_name, _CREDIT_WORDS) or _mentions(ledger_name, _CREDIT_WORDS):
        return EntryType.CR
    return EntryType.DR


def infer_group_category(group_name: str) -> GroupCategory:
    """Reporting category for a group known only by its name."""
    for name, code, category in SYSTEM_GROUPS:
        if group_name.strip().lower() in (name.lower(), code.lower()):
            return category
    if _mentions(group_name, _EQUITY_WORDS):
        return GroupCategory.EQUITY
    if _mentions(group_name, _LIABILITY_WORDS):
        return GroupCategory.LIABILITY
    if _mentions(group_name, _FIXED_ASSET_WORDS):
        return GroupCategory.FIXED_ASSET
    if _mentions(group_name, _INCOME_WORDS):
        return GroupCategory.INCOME
    if _mentions(group_name, _EXPENSE_WORDS):
        return GroupCategory.EXPENSE
    return GroupCategory.CURRENT_ASSET


def code_from_name(name: str, max_length: int = 50) -> str:
    """'HDFC Bank' -> 'HDFC-BANK'."""
    slug = re.sub(r"[^A-Z0-9]+", "-", name.upper()).strip("-")
    return slug[:max_length] or "LEDGER"


def sku_from_name(name: str, max_length: int = 50) -> str:
    """'Widget Pro' -> 'WIDGET-PRO'."""
    return re.sub(r"\s+", "-", name.strip().upper())[:max_length]


@dataclass(frozen=True)
class ResolvedLine:
    """An opening line with its side decided."""

    line: OpeningBalanceLine
    entry_type: EntryType


@dataclass(frozen=True)
class OpeningTotals:
    ledger_debit_total: Decimal
    inventory_value: Decimal
    credit_total: Decimal

    @property
    def debit_total(self) -> Decimal:
        return self.ledger_debit_total + self.inventory_value

    @property
    def variance(self) -> Decimal:
        return abs(self.debit_total - self.credit_total)


def resolve_entry_types(balances: Iterable[OpeningBalanceLine]) -> tuple[ResolvedLine, ...]:
    return tuple(
        ResolvedLine(
            line=line,
            entry_type=line.entry_type or infer_entry_type(line.group_name, line.ledger_name),
        )
        for line in balances
    )


def compute_opening_totals(
    lines: Iterable[ResolvedLine],
    items: Iterable[InventoryItem],
) -> OpeningTotals:
    debit = ZERO
    credit = ZERO
    for resolved in lines:
        if resolved.entry_type is EntryType.DR:
            debit += resolved.line.amount
        else:
            credit += resolved.line.amount
    inventory = sum((item.total_value for item in items), ZERO)
    return OpeningTotals(
        ledger_debit_total=debit,
        inventory_value=inventory,
        credit_total=credit,
    )


def check_opening_balance(
    totals: OpeningTotals,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> None:
    """
    Raises:
        OpeningPositionImbalanceError: variance exceeds ``tolerance``.
    """
    if totals.variance > tolerance:
        raise OpeningPositionImbalanceError(
            debit_total=totals.debit_total,
            credit_total=totals.credit_total,
        )


def check_posting_count(
    lines: Iterable[ResolvedLine],
    totals: OpeningTotals,
    minimum: int = MIN_OPENING_POSTINGS,
) -> int:
    """
    Count the postings the opening voucher will carry: one per non-zero
    line, plus the stock line when there is stock.

    Raises:
        ValidationError: fewer than ``minimum`` postings would be written.
    """
    count = sum(1 for resolved in lines if resolved.line.amount != 0)
    if totals.inventory_value > 0:
        count += 1
    if count < minimum:
        raise ValidationError(
            f"Opening position needs at least {minimum} non-zero entries, got {count}",
            field="opening_balances",
        )
    return count
