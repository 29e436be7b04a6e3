"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    ASSET_CATEGORIES,
    LIABILITY_EQUITY_CATEGORIES,
    SYSTEM_GROUPS,
    Account,
    AccountGroup,
    EntryType,
    GroupCategory,
    normal_balance_for,
)
from ledger_kernel.models.business import Business
from ledger_kernel.models.inventory import InventoryValuation, Product
from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.models.voucher import (
    VOUCHER_NUMBER_PREFIXES,
    Posting,
    Voucher,
    VoucherStatus,
    VoucherType,
)

__all__ = [
    "ASSET_CATEGORIES",
    "LIABILITY_EQUITY_CATEGORIES",
    "SYSTEM_GROUPS",
    "Account",
    "AccountGroup",
    "Business",
    "EntryType",
    "GroupCategory",
    "InventoryValuation",
    "Posting",
    "Product",
    "SequenceCounter",
    "VOUCHER_NUMBER_PREFIXES",
    "Voucher",
    "VoucherStatus",
    "VoucherType",
    "normal_balance_for",
]
