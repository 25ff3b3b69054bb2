"""
Module: stock_kernel.models.adjustment
Responsibility: Append-only audit log of manual stock corrections.
Architecture position: Kernel > Models.  May import from db/base.py only.

Rows are never updated or deleted (db/immutability.py).  ``stock_before``
and ``stock_after`` are snapshotted at apply time so the lot's history can
be replayed from this table alone.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import AwareDateTime, Base, UUIDString


class InventoryAdjustment(Base):
    __tablename__ = "inventory_adjustments"

    __table_args__ = (
        CheckConstraint("quantity_delta <> 0", name="ck_adjustment_delta_nonzero"),
        CheckConstraint("stock_after >= 0", name="ck_adjustment_after_non_negative"),
        Index("idx_adjustment_lot", "lot_id"),
        Index("idx_adjustment_product_created", "product_id", "created_at"),
    )

    lot_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=False,
    )

    # Denormalized from the lot for history queries by product
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity_delta: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        AwareDateTime(),
        nullable=False,
    )

    stock_before: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    stock_after: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<InventoryAdjustment {self.id} lot={self.lot_id} delta={self.quantity_delta}>"
