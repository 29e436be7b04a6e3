"""
Business -- tenant boundary for every ledger record.

The ``is_initialized`` flag gates ordinary voucher mutation until the
opening position has been accepted.  It flips exactly once, inside the
opening-position transaction.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Business(TrackedBase):
    """A tenant whose books are kept by the kernel."""

    __tablename__ = "businesses"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    # Preferred date for the opening-position voucher
    financial_year_start: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    is_initialized: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    initialized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Business {self.name} initialized={self.is_initialized}>"
