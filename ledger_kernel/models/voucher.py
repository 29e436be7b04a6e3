"""
Vouchers and postings -- the double-entry record.

Responsibility:
    A Voucher is a business document (journal, payment, receipt, sales,
    purchase, contra) owning two or more Postings.  Postings are the only
    source of account movement.

Invariants enforced:
    - (business_id, voucher_number) is unique.  This also guards the
      opening-position voucher against duplicate bootstraps.
    - Posting amounts are strictly positive; the side is entry_type.
    - Cancelled vouchers keep their postings (audit retention); every
      balance query filters them out by status.
    - POSTED and CANCELLED vouchers are frozen (db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.account import EntryType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class VoucherType(str, Enum):
    """Kind of business document."""

    JOURNAL = "JOURNAL"
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    SALES = "SALES"
    PURCHASE = "PURCHASE"
    CONTRA = "CONTRA"


# Prefixes for generated voucher numbers
VOUCHER_NUMBER_PREFIXES: dict[VoucherType, str] = {
    VoucherType.JOURNAL: "JV",
    VoucherType.PAYMENT: "PV",
    VoucherType.RECEIPT: "RV",
    VoucherType.SALES: "SV",
    VoucherType.PURCHASE: "PU",
    VoucherType.CONTRA: "CV",
}


class VoucherStatus(str, Enum):
    """Lifecycle status of a voucher.

    Contract: DRAFT -> POSTED -> CANCELLED, or DRAFT -> CANCELLED.
    Reversal creates a new voucher instead of changing status.
    """

    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class Voucher(TrackedBase):
    """Voucher header."""

    __tablename__ = "vouchers"

    __table_args__ = (
        UniqueConstraint("business_id", "voucher_number", name="uq_voucher_business_number"),
        Index("idx_voucher_business_date", "business_id", "voucher_date"),
        Index("idx_voucher_status", "status"),
        Index("idx_voucher_reversal_of", "reversal_of_id"),
    )

    business_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("businesses.id"),
        nullable=False,
    )

    voucher_type: Mapped[VoucherType] = mapped_column(String(20), nullable=False)

    voucher_number: Mapped[str] = mapped_column(String(100), nullable=False)

    voucher_date: Mapped[date] = mapped_column(Date, nullable=False)

    narration: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    status: Mapped[VoucherStatus] = mapped_column(
        String(10),
        default=VoucherStatus.DRAFT,
        nullable=False,
    )

    is_system_generated: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # If this is a reversal, points to the original voucher
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("vouchers.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    postings: Mapped[list["Posting"]] = relationship(
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="Posting.line_no",
        lazy="selectin",
    )

    reversal_of: Mapped["Voucher | None"] = relationship(
        remote_side="Voucher.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<Voucher {self.voucher_number} status={self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == VoucherStatus.DRAFT


class Posting(TrackedBase):
    """One leg of a voucher."""

    __tablename__ = "postings"

    __table_args__ = (
        UniqueConstraint("voucher_id", "line_no", name="uq_posting_voucher_line"),
        Index("idx_posting_account_date", "account_id", "posting_date"),
        Index("idx_posting_voucher", "voucher_id"),
        CheckConstraint("amount > 0", name="ck_posting_amount_positive"),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vouchers.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(String(2), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Denormalized voucher date for ledger range scans
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)

    voucher: Mapped[Voucher] = relationship(back_populates="postings")

    account: Mapped["Account"] = relationship(back_populates="postings")

    def __repr__(self) -> str:
        return f"<Posting {self.line_no} {self.entry_type} {self.amount}>"
