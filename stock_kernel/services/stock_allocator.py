"""
StockAllocator -- FIFO, all-or-nothing stock consumption.

Responsibility:
    Deplete a product's lots in FIFO order for a requested quantity.  This
    is the principal race in the ledger: two concurrent sales must never
    oversubscribe the same lot.

Architecture position:
    Kernel > Services.  Flush-only; the caller's transaction is the
    serializable scope.

Concurrency:
    1. Lock the product row(s) with SELECT ... FOR UPDATE, in ascending
       product-id order when several products are involved, so two carts
       sharing products cannot deadlock.
    2. Lock the product's non-depleted lots (FOR UPDATE, FIFO order) and
       re-read their stock.
    3. Plan every product in full (domain.allocation.plan_fifo).  Any
       shortage aborts before a single lot is touched.
    4. Apply the plan and flush.

Failure modes:
    - InsufficientStockError (single product) / StockShortageError (cart):
      nothing mutated.
    - InvalidQuantityError for quantity <= 0.
    - ProductNotFoundError for unknown products.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.allocation import available_quantity, plan_fifo
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AllocationLine, ConsumptionResult
from stock_kernel.domain.values import round_quantity, to_positive_quantity
from stock_kernel.exceptions import InsufficientStockError, StockShortageError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.inventory_lot import InventoryLot
from stock_kernel.services.base import BaseService
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.product_service import ProductService

logger = get_logger("services.stock_allocator")


class StockAllocator(BaseService[InventoryLot]):
    """Consumes stock across lots in FIFO order, atomically."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock, config)
        self._lots = LotStore(session, self._clock, self._config)
        self._products = ProductService(session, self._clock, self._config)

    def consume(self, product_id: UUID, quantity: Decimal | str | int) -> ConsumptionResult:
        """
        Consume ``quantity`` of one product, FIFO.

        Returns:
            ConsumptionResult whose ``pairs`` are ``[(lot_id, taken), ...]``.

        Raises:
            InsufficientStockError: available < requested; no lot mutated.
        """
        requested = to_positive_quantity(quantity, self._config.quantity_places)
        try:
            results = self.consume_many({product_id: requested})
        except StockShortageError as exc:
            raise exc.shortages[0] from None
        return results[product_id]

    def consume_many(
        self,
        requests: Mapping[UUID, Decimal | str | int],
    ) -> dict[UUID, ConsumptionResult]:
        """
        Consume several products in one all-or-nothing step.

        Every product is planned before any lot is changed, so the caller
        sees every shortage of the cart at once.

        Raises:
            StockShortageError: one or more products are short; carries one
                InsufficientStockError per short product.  Nothing mutated.
        """
        places = self._config.quantity_places
        wanted = {
            product_id: to_positive_quantity(qty, places)
            for product_id, qty in requests.items()
        }

        planned: dict[UUID, tuple[list[InventoryLot], tuple[AllocationLine, ...]]] = {}
        shortages: list[InsufficientStockError] = []

        for product_id in sorted(wanted, key=str):
            self._products.lock_product(product_id)
            lots = self._lots.lock_lots(product_id)
            try:
                plan = plan_fifo(product_id, lots, wanted[product_id])
            except InsufficientStockError as exc:
                shortages.append(exc)
                continue
            planned[product_id] = (lots, plan)

        if shortages:
            for exc in shortages:
                logger.warning(
                    "consumption_insufficient_stock",
                    extra={
                        "product_id": exc.product_id,
                        "requested": exc.requested,
                        "available": exc.available,
                    },
                )
            raise StockShortageError(tuple(shortages))

        results: dict[UUID, ConsumptionResult] = {}
        for product_id, (lots, plan) in planned.items():
            with LogContext.bind(product_id=product_id):
                self._apply(lots, plan, places)
                logger.info(
                    "stock_consumed",
                    extra={
                        "requested": str(wanted[product_id]),
                        "lots_touched": len(plan),
                        "remaining": str(available_quantity(lots)),
                    },
                )
            results[product_id] = ConsumptionResult(
                product_id=product_id,
                requested=wanted[product_id],
                allocations=plan,
            )

        self.session.flush()
        return {product_id: results[product_id] for product_id in requests}

    @staticmethod
    def _apply(
        lots: list[InventoryLot],
        plan: tuple[AllocationLine, ...],
        places: int,
    ) -> None:
        by_id = {lot.id: lot for lot in lots}
        for line in plan:
            lot = by_id[line.lot_id]
            before = lot.stock_quantity
            lot.stock_quantity = round_quantity(before - line.quantity, places)
            logger.debug(
                "lot_depleted" if lot.stock_quantity == 0 else "lot_decremented",
                extra={
                    "lot_id": str(lot.id),
                    "taken": str(line.quantity),
                    "stock_before": str(before),
                    "stock_after": str(lot.stock_quantity),
                },
            )
