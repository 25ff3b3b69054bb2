"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for the product catalog.  A product owns a
    set of inventory lots; its total stock is never stored here, it is
    always summed from the lots.
Architecture position: Kernel > Models.  May import from db/base.py only.

The product row doubles as the per-product lock target: the StockAllocator
takes ``SELECT ... FOR UPDATE`` on it before reading the product's lots.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """Catalog entry.  Identity is immutable; catalog editing lives elsewhere."""

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("sale_price >= 0", name="ck_product_sale_price_non_negative"),
        CheckConstraint(
            "low_stock_threshold IS NULL OR low_stock_threshold >= 0",
            name="ck_product_threshold_non_negative",
        ),
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
    )

    unit_of_measure: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    sale_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # Per-product override of LedgerConfig.low_stock_threshold
    low_stock_threshold: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    sold_by_weight: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    lots: Mapped[list["InventoryLot"]] = relationship(  # noqa: F821
        back_populates="product",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.unit_of_measure})>"
