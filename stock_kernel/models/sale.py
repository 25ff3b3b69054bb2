"""
Module: stock_kernel.models.sale
Responsibility: ORM persistence for sales, their line items, and the
    lot allocations that fulfilled each line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A Sale, its SaleItems and their SaleAllocations are written in the
      same transaction as the lot depletion they describe.
    - SaleAllocation rows are append-only (db/immutability.py): they are the
      provenance record for cost and margin analysis.
    - For every item, sum(allocation.quantity) == item.quantity.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class Sale(TrackedBase):
    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_sale_total_non_negative"),
        Index("idx_sale_date_status", "sale_date", "status"),
    )

    # Calendar date in the configured ledger timezone
    sale_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="completed",
    )

    items: Mapped[list["SaleItem"]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} {self.sale_date} {self.payment_method} {self.total_amount}>"


class SaleItem(Base):
    __tablename__ = "sale_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_item_quantity_positive"),
        CheckConstraint("price_at_sale >= 0", name="ck_sale_item_price_non_negative"),
        Index("idx_sale_item_sale", "sale_id"),
        Index("idx_sale_item_product", "product_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales.id"),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    price_at_sale: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    sale: Mapped[Sale] = relationship(back_populates="items")

    allocations: Mapped[list["SaleAllocation"]] = relationship(
        back_populates="item",
        cascade="all",
        lazy="selectin",
    )


class SaleAllocation(Base):
    """Quantity of one sale item taken from one lot."""

    __tablename__ = "sale_allocations"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
        Index("idx_allocation_item", "sale_item_id"),
        Index("idx_allocation_lot", "lot_id"),
    )

    sale_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sale_items.id"),
        nullable=False,
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # Lot purchase_price at the time of the sale
    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    item: Mapped[SaleItem] = relationship(back_populates="allocations")
