"""
Module: stock_kernel.models.purchase
Responsibility: ORM persistence for supplier purchases.  A purchase is the
    provenance of one or more inventory lots and, when paid in cash, an
    outflow of the drawer on ``purchase_date``.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TrackedBase


class Purchase(TrackedBase):
    __tablename__ = "purchases"

    __table_args__ = (
        CheckConstraint("total_cost >= 0", name="ck_purchase_total_non_negative"),
        Index("idx_purchase_date_method", "purchase_date", "payment_method"),
    )

    purchase_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # sum(quantity * unit_cost) over the lots, rounded to cents
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    supplier_name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    lots: Mapped[list["InventoryLot"]] = relationship(  # noqa: F821
        back_populates="purchase",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Purchase {self.id} {self.purchase_date} total={self.total_cost}>"
