"""
Pure domain layer.

This package contains enums, DTOs and domain logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from stock_kernel.domain.allocation import plan_fifo
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.closure import (
    CLOSURE_TRANSITIONS,
    ClosureAttempt,
    ClosureState,
)
from stock_kernel.domain.dtos import (
    AdjustmentReason,
    AlertType,
    DifferenceType,
    ExpenseCategory,
    LotStatus,
    PaymentMethod,
    SaleStatus,
    UnitOfMeasure,
)
from stock_kernel.domain.reconciliation import classify_difference, reconcile
from stock_kernel.domain.status import (
    aggregate_product,
    classify,
    days_until_expiry,
    percentage_remaining,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "LotStatus",
    "AdjustmentReason",
    "PaymentMethod",
    "ExpenseCategory",
    "UnitOfMeasure",
    "SaleStatus",
    "DifferenceType",
    "AlertType",
    "ClosureState",
    "ClosureAttempt",
    "CLOSURE_TRANSITIONS",
    "classify",
    "percentage_remaining",
    "days_until_expiry",
    "aggregate_product",
    "plan_fifo",
    "reconcile",
    "classify_difference",
]
