"""
Module: stock_kernel.models.inventory_lot
Responsibility: ORM persistence for inventory lots, the unit of FIFO
    consumption.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - initial_quantity > 0, set once at creation and never changed
      (CHECK constraint here, immutability listener in db/immutability.py).
    - 0 <= stock_quantity <= initial_quantity (CHECK constraint).
    - purchase_price >= 0.
    - purchase_id is NOT NULL: every lot is traceable to the purchase that
      created it.
    - Lots are never deleted; they are depleted to stock_quantity == 0.

The (product_id, expiration_date, created_at) index supports the FIFO read.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import AwareDateTime, Base, UUIDString


class InventoryLot(Base):
    """
    One batch of stock for one product.

    Guarantees:
        - stock_quantity starts equal to initial_quantity.
        - The database rejects any write that leaves the lot outside
          ``0 <= stock_quantity <= initial_quantity``.
    """

    __tablename__ = "inventory_lots"

    __table_args__ = (
        CheckConstraint("initial_quantity > 0", name="ck_lot_initial_positive"),
        CheckConstraint("stock_quantity >= 0", name="ck_lot_stock_non_negative"),
        CheckConstraint(
            "stock_quantity <= initial_quantity",
            name="ck_lot_stock_within_initial",
        ),
        CheckConstraint("purchase_price >= 0", name="ck_lot_price_non_negative"),
        Index("idx_lot_product_fifo", "product_id", "expiration_date", "created_at"),
        Index("idx_lot_purchase", "purchase_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    purchase_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchases.id"),
        nullable=False,
    )

    initial_quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    stock_quantity: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # Unit cost at purchase; copied onto sale allocations for margin analysis
    purchase_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    expiration_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        AwareDateTime(),
        nullable=False,
    )

    product: Mapped["Product"] = relationship(back_populates="lots")  # noqa: F821
    purchase: Mapped["Purchase"] = relationship(back_populates="lots")  # noqa: F821

    @property
    def lot_id(self) -> UUID:
        return self.id

    @property
    def is_depleted(self) -> bool:
        return self.stock_quantity == 0

    def __repr__(self) -> str:
        return (
            f"<InventoryLot {self.id} product={self.product_id} "
            f"stock={self.stock_quantity}/{self.initial_quantity}>"
        )


# Consumption order: expiration_date ASC with never-expiring lots last,
# then created_at ASC; id makes the order total.
FIFO_ORDER = (
    InventoryLot.expiration_date.is_(None),
    InventoryLot.expiration_date,
    InventoryLot.created_at,
    InventoryLot.id,
)
