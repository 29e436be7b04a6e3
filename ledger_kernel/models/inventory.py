"""
Products and inventory valuations.

Used by the opening-position workflow and by the dashboard's stock KPIs.
A valuation row records quantity x unit cost for one product as of a date,
linked to the voucher that brought the stock onto the books.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class Product(TrackedBase):
    """A stock item.  Names are unique per business."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("business_id", "name", name="uq_product_business_name"),
    )

    business_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("businesses.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    sku: Mapped[str] = mapped_column(String(50), nullable=False)

    category: Mapped[str] = mapped_column(String(100), default="General", nullable=False)

    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Product {self.sku}: {self.name}>"


class InventoryValuation(TrackedBase):
    """Quantity and cost of one product as of a date."""

    __tablename__ = "inventory_valuations"

    __table_args__ = (
        Index("idx_valuation_business_date", "business_id", "valuation_date"),
        Index("idx_valuation_product", "product_id"),
    )

    business_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("businesses.id"),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    voucher_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("vouchers.id"),
        nullable=True,
    )

    valuation_date: Mapped[date] = mapped_column(Date, nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    total_value: Mapped[Decimal] = mapped_column(nullable=False)

    product: Mapped[Product] = relationship()
