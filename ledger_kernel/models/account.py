"""
Chart of accounts: AccountGroup and Account.

Responsibility:
    Groups classify accounts into one of six reporting categories; an
    account's group determines which report section its balance lands in.
    Codes are unique per business for both groups and accounts.

Invariants enforced:
    - (business_id, code) is unique for groups and for accounts.
    - opening_balance is never negative; its side is opening_balance_type.
    - Groups and accounts are never deleted (db/immutability.py).
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.voucher import Posting


class EntryType(str, Enum):
    """Side of a posting or of a balance."""

    DR = "DR"
    CR = "CR"

    @property
    def opposite(self) -> "EntryType":
        return EntryType.CR if self is EntryType.DR else EntryType.DR


class GroupCategory(str, Enum):
    """Reporting category of an account group."""

    CURRENT_ASSET = "CURRENT_ASSET"
    FIXED_ASSET = "FIXED_ASSET"
    LIABILITY = "LIABILITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    EQUITY = "EQUITY"


ASSET_CATEGORIES = frozenset({GroupCategory.CURRENT_ASSET, GroupCategory.FIXED_ASSET})
LIABILITY_EQUITY_CATEGORIES = frozenset({GroupCategory.LIABILITY, GroupCategory.EQUITY})
PROFIT_LOSS_CATEGORIES = frozenset({GroupCategory.INCOME, GroupCategory.EXPENSE})

# The six groups seeded once per business: (name, code, category)
SYSTEM_GROUPS: tuple[tuple[str, str, GroupCategory], ...] = (
    ("Current Assets", "CA", GroupCategory.CURRENT_ASSET),
    ("Fixed Assets", "FA", GroupCategory.FIXED_ASSET),
    ("Liabilities", "LI", GroupCategory.LIABILITY),
    ("Income", "IN", GroupCategory.INCOME),
    ("Expenses", "EX", GroupCategory.EXPENSE),
    ("Capital", "EQ", GroupCategory.EQUITY),
)


def normal_balance_for(category: GroupCategory | str) -> EntryType:
    """Natural side of accounts in a category: assets and expenses are DR."""
    category = GroupCategory(category)
    if category in ASSET_CATEGORIES or category is GroupCategory.EXPENSE:
        return EntryType.DR
    return EntryType.CR


class AccountGroup(TrackedBase):
    """
    A node in the chart-of-accounts tree.

    System groups (``is_system=True``) are the six canonical roots seeded by
    ``ChartOfAccountsService.bootstrap_groups``; custom groups may hang off
    them through ``parent_group_id``.
    """

    __tablename__ = "account_groups"

    __table_args__ = (
        UniqueConstraint("business_id", "code", name="uq_group_business_code"),
        Index("idx_group_business", "business_id"),
    )

    business_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("businesses.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    category: Mapped[GroupCategory] = mapped_column(String(20), nullable=False)

    parent_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("account_groups.id"),
        nullable=True,
    )

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    accounts: Mapped[list["Account"]] = relationship(back_populates="group")

    def __repr__(self) -> str:
        return f"<AccountGroup {self.code}: {self.name} ({self.category})>"


class Account(TrackedBase):
    """
    A ledger account.

    Contract:
        Balances are never stored; they are derived from the opening balance
        plus the posted movement (selectors/ledger_selector.py).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("business_id", "code", name="uq_account_business_code"),
        Index("idx_account_business", "business_id"),
        Index("idx_account_group", "account_group_id"),
        CheckConstraint("opening_balance >= 0", name="ck_account_opening_non_negative"),
    )

    business_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("businesses.id"),
        nullable=False,
    )

    # Nullable only for legacy or imported rows; the dashboard flags them
    account_group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("account_groups.id"),
        nullable=True,
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    normal_balance: Mapped[EntryType] = mapped_column(String(2), nullable=False)

    opening_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    opening_balance_type: Mapped[EntryType] = mapped_column(
        String(2),
        default=EntryType.DR,
        nullable=False,
    )

    group: Mapped[AccountGroup | None] = relationship(back_populates="accounts")

    postings: Mapped[list["Posting"]] = relationship(back_populates="account")

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
