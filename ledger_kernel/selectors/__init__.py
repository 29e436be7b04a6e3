"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import AccountMovement, LedgerSelector
from ledger_kernel.selectors.voucher_selector import VoucherSelector

__all__ = [
    "AccountMovement",
    "AccountSelector",
    "LedgerSelector",
    "VoucherSelector",
]
