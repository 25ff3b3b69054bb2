"""
Status classification for inventory lots.

Responsibility:
    Derive the alert status of a lot from its quantity and expiration date,
    and fold per-lot statuses into the product-level overview row.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ``today`` is always
    passed in; nothing here reads a clock.

Precedence (first match wins):
    1. DEPLETED     stock_quantity == 0
    2. EXPIRED      expiration_date < today
    3. NEAR_EXPIRY  0 <= days_until_expiry <= near_expiry_days
    4. LOW_STOCK    stock_quantity <= low_stock_threshold
    5. NORMAL

``percentage_remaining`` is a float used for display and averaging only.
No comparison in the kernel is made against it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Protocol

from stock_kernel.domain.dtos import LotStatus

ZERO = Decimal("0")


class LotLike(Protocol):
    """Anything carrying the quantity and expiration fields of a lot."""

    initial_quantity: Decimal
    stock_quantity: Decimal
    expiration_date: date | None


def days_until_expiry(expiration_date: date | None, today: date) -> int | None:
    """Whole days from ``today`` to ``expiration_date``; negative once expired."""
    if expiration_date is None:
        return None
    return (expiration_date - today).days


def is_low_stock(lot: LotLike, low_stock_threshold: Decimal) -> bool:
    return ZERO < lot.stock_quantity <= low_stock_threshold


def is_near_expiry(lot: LotLike, today: date, near_expiry_days: int) -> bool:
    days = days_until_expiry(lot.expiration_date, today)
    return days is not None and 0 <= days <= near_expiry_days


def classify(
    lot: LotLike,
    today: date,
    low_stock_threshold: Decimal,
    near_expiry_days: int,
) -> LotStatus:
    """Derive a lot's status.  A depleted lot is DEPLETED even if expired."""
    if lot.stock_quantity == ZERO:
        return LotStatus.DEPLETED

    days = days_until_expiry(lot.expiration_date, today)
    if days is not None and days < 0:
        return LotStatus.EXPIRED
    if days is not None and days <= near_expiry_days:
        return LotStatus.NEAR_EXPIRY
    if lot.stock_quantity <= low_stock_threshold:
        return LotStatus.LOW_STOCK
    return LotStatus.NORMAL


def percentage_remaining(lot: LotLike) -> float:
    """``stock / initial * 100`` clamped to [0, 100]."""
    if lot.initial_quantity <= ZERO:
        return 0.0
    pct = float(lot.stock_quantity / lot.initial_quantity * 100)
    return max(0.0, min(100.0, pct))


@dataclass(frozen=True)
class ProductStockAggregate:
    """Product-level fold over the product's non-depleted lots."""

    total_stock: Decimal
    active_lots: int
    has_low_stock: bool
    has_near_expiry: bool
    avg_percentage_remaining: float
    min_percentage_remaining: float


def aggregate_product(
    lots: Iterable[LotLike],
    today: date,
    low_stock_threshold: Decimal,
    near_expiry_days: int,
) -> ProductStockAggregate:
    """Fold a product's lots into its overview figures.

    Depleted lots contribute nothing.  ``has_low_stock`` / ``has_near_expiry``
    are the OR over the active lots' classified statuses.  A product with no
    active lots aggregates to zeros.
    """
    total = ZERO
    count = 0
    has_low = False
    has_near = False
    percentages: list[float] = []

    for lot in lots:
        if lot.stock_quantity == ZERO:
            continue
        status = classify(lot, today, low_stock_threshold, near_expiry_days)
        total += lot.stock_quantity
        count += 1
        has_low = has_low or status is LotStatus.LOW_STOCK
        has_near = has_near or status is LotStatus.NEAR_EXPIRY
        percentages.append(percentage_remaining(lot))

    return ProductStockAggregate(
        total_stock=total,
        active_lots=count,
        has_low_stock=has_low,
        has_near_expiry=has_near,
        avg_percentage_remaining=(sum(percentages) / count) if count else 0.0,
        min_percentage_remaining=min(percentages) if percentages else 0.0,
    )
