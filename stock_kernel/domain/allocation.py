"""
FIFO allocation planner.

Responsibility:
    Given a product's lots and a requested quantity, decide how much to take
    from each lot.  The plan is computed in full before anything is applied,
    so a shortage is detected without touching a single lot.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The StockAllocator
    service locks and loads the lots, calls ``plan_fifo()``, then applies
    the plan.

FIFO order:
    The planner trusts the order it is given.  Lots come from
    ``LotStore.lock_lots``, which sorts them with
    ``models.inventory_lot.FIFO_ORDER``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Protocol, Sequence
from uuid import UUID

from stock_kernel.domain.dtos import AllocationLine
from stock_kernel.exceptions import InsufficientStockError

ZERO = Decimal("0")


class AllocatableLot(Protocol):
    lot_id: UUID
    stock_quantity: Decimal
    purchase_price: Decimal


def available_quantity(lots: Iterable[AllocatableLot]) -> Decimal:
    return sum((lot.stock_quantity for lot in lots), ZERO)


def plan_fifo(
    product_id: UUID,
    lots: Sequence[AllocatableLot],
    quantity: Decimal,
) -> tuple[AllocationLine, ...]:
    """Plan a FIFO consumption of ``quantity`` across ``lots``.

    ``lots`` must already be in FIFO order.  Each lot gives
    ``min(remaining, lot.stock_quantity)``; depleted lots are skipped.

    Raises:
        InsufficientStockError: total available is below ``quantity``.
    """
    available = available_quantity(lots)
    if available < quantity:
        raise InsufficientStockError(
            product_id=str(product_id),
            requested=str(quantity),
            available=str(available),
        )

    remaining = quantity
    plan: list[AllocationLine] = []
    for lot in lots:
        if remaining <= ZERO:
            break
        if lot.stock_quantity <= ZERO:
            continue
        take = min(remaining, lot.stock_quantity)
        plan.append(AllocationLine(
            lot_id=lot.lot_id,
            quantity=take,
            unit_cost=lot.purchase_price,
        ))
        remaining -= take

    return tuple(plan)
