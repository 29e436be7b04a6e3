"""
Signed amounts and the running-balance prefix sum.

Sign convention: DR is +amount, CR is -amount.  An account's balance at T
is its signed opening balance plus the signed postings dated on or before T,
taken in (date, voucher number, amount, line number, posting id) order.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Iterator, TypeVar

from ledger_kernel.models.account import EntryType

T = TypeVar("T")


def signed_amount(entry_type: EntryType | str, amount: Decimal) -> Decimal:
    """+amount for DR, -amount for CR."""
    return amount if EntryType(entry_type) is EntryType.DR else -amount


def signed_opening(opening_balance: Decimal, opening_balance_type: EntryType | str) -> Decimal:
    return signed_amount(opening_balance_type, opening_balance)


def running_balances(
    opening: Decimal,
    rows: Iterable[T],
    entry_type_of=lambda row: row.entry_type,
    amount_of=lambda row: row.amount,
) -> Iterator[tuple[T, Decimal]]:
    """
    Single forward pass yielding each row with its cumulative balance.

    ``rows`` must already be in ledger order; this function never sorts.
    """
    balance = opening
    for row in rows:
        balance += signed_amount(entry_type_of(row), amount_of(row))
        yield row, balance
