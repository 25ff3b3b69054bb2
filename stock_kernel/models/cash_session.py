"""
Module: stock_kernel.models.cash_session
Responsibility: ORM persistence for daily cash drawer sessions.  One row per
    calendar date, written once by the ClosureCoordinator together with the
    full reconciliation breakdown.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - session_date is UNIQUE: at most one closure per calendar date.  This
      constraint is the last line of defence against two concurrent
      closures for the same day; the coordinator maps the resulting
      IntegrityError to AlreadyClosedError.
    - starting_cash >= 0, ending_cash >= 0.
    - A session with end_time set is closed and never reopened or edited
      (db/immutability.py).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import AwareDateTime, Base, UUIDString


class CashDrawerSession(Base):
    __tablename__ = "cash_drawer_sessions"

    __table_args__ = (
        UniqueConstraint("session_date", name="uq_cash_session_date"),
        CheckConstraint("starting_cash >= 0", name="ck_cash_session_starting_non_negative"),
        CheckConstraint("ending_cash >= 0", name="ck_cash_session_ending_non_negative"),
    )

    session_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # Who requested the closure
    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Manager whose credentials authorized it
    approved_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    start_time: Mapped[datetime] = mapped_column(
        AwareDateTime(),
        nullable=False,
    )

    end_time: Mapped[datetime | None] = mapped_column(
        AwareDateTime(),
        nullable=True,
    )

    starting_cash: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    ending_cash: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Breakdown snapshot at closure time
    calculated_sales: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False)
    sales_cash: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    sales_card: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    sales_transfer: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    purchases_cash: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    operations_cash: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    non_cash_purchases: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    non_cash_operations: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    cash_in: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    cash_out: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    cash_net: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    expected_ending: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    difference: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    difference_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def __repr__(self) -> str:
        return f"<CashDrawerSession {self.session_date} diff={self.difference} {self.difference_type}>"
