"""
AdjustmentLedger -- signed manual stock corrections against a single lot.

Rules:
    - ``merma``, ``caducado``, ``daño``: quantity_delta < 0 and
      ``|quantity_delta| <= stock_quantity``.
    - ``ajuste_manual``: quantity_delta > 0, at most
      ``LedgerConfig.max_manual_increase``, and the result may not exceed
      the lot's ``initial_quantity``.
    - quantity_delta == 0 is rejected.

Every adjustment is an append-only InventoryAdjustment row carrying
``stock_before`` / ``stock_after`` snapshotted under the lock.  Adjustments
are cash-neutral.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AdjustmentReason, AdjustmentRecord
from stock_kernel.domain.values import ZERO, round_quantity, to_enum, to_quantity
from stock_kernel.exceptions import AdjustmentOutOfBoundsError, InvalidQuantityError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.adjustment import InventoryAdjustment
from stock_kernel.services.base import BaseService
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.product_service import ProductService

logger = get_logger("services.adjustment_ledger")


def adjustment_to_dto(
    adjustment: InventoryAdjustment,
    product_name: str | None = None,
) -> AdjustmentRecord:
    return AdjustmentRecord(
        adjustment_id=adjustment.id,
        lot_id=adjustment.lot_id,
        product_id=adjustment.product_id,
        quantity_delta=adjustment.quantity_delta,
        reason=AdjustmentReason(adjustment.reason),
        actor_id=adjustment.actor_id,
        created_at=adjustment.created_at,
        stock_before=adjustment.stock_before,
        stock_after=adjustment.stock_after,
        note=adjustment.note,
        product_name=product_name,
    )


class AdjustmentLedger(BaseService[InventoryAdjustment]):
    """Applies and records manual lot corrections."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock, config)
        self._lots = LotStore(session, self._clock, self._config)
        self._products = ProductService(session, self._clock, self._config)

    def adjust(
        self,
        lot_id: UUID,
        quantity_delta: Decimal | str | int,
        reason: AdjustmentReason | str,
        actor_id: UUID,
        note: str | None = None,
    ) -> AdjustmentRecord:
        """
        Apply a signed correction to one lot.

        Raises:
            ValidationError: unknown reason.
            InvalidQuantityError: zero or malformed delta, or a sign that
                does not match the reason.
            AdjustmentOutOfBoundsError: the result would leave
                ``0 <= stock_quantity <= initial_quantity``, or the increase
                exceeds the configured ceiling.
            LotNotFoundError: unknown lot.
        """
        adjustment_reason = to_enum(AdjustmentReason, reason, "reason")
        places = self._config.quantity_places
        delta = to_quantity(quantity_delta, places, "quantity_delta")

        if delta == ZERO:
            raise InvalidQuantityError("quantity_delta", str(delta), "must not be zero")
        if adjustment_reason.is_decrease and delta > ZERO:
            raise InvalidQuantityError(
                "quantity_delta", str(delta),
                f"reason '{adjustment_reason.value}' requires a negative delta",
            )
        if not adjustment_reason.is_decrease and delta < ZERO:
            raise InvalidQuantityError(
                "quantity_delta", str(delta),
                f"reason '{adjustment_reason.value}' requires a positive delta",
            )

        # Same lock order as StockAllocator: product first, then the lot.
        lot_product_id = self._lots.get_lot(lot_id).product_id
        self._products.lock_product(lot_product_id)
        lot = self._lots.lock_lot(lot_id)

        with LogContext.bind(product_id=lot.product_id):
            before = lot.stock_quantity
            after = round_quantity(before + delta, places)
            self._check_bounds(lot.id, lot.initial_quantity, before, delta, after)

            lot.stock_quantity = after
            adjustment = InventoryAdjustment(
                lot_id=lot.id,
                product_id=lot.product_id,
                quantity_delta=delta,
                reason=adjustment_reason.value,
                actor_id=actor_id,
                created_at=self._clock.now(),
                stock_before=before,
                stock_after=after,
                note=note,
            )
            self.session.add(adjustment)
            self.session.flush()

            logger.info(
                "lot_adjusted",
                extra={
                    "lot_id": str(lot.id),
                    "reason": adjustment_reason.value,
                    "quantity_delta": str(delta),
                    "stock_before": str(before),
                    "stock_after": str(after),
                },
            )

        return adjustment_to_dto(adjustment)

    def _check_bounds(
        self,
        lot_id: UUID,
        initial: Decimal,
        before: Decimal,
        delta: Decimal,
        after: Decimal,
    ) -> None:
        if after < ZERO:
            self._reject(lot_id, delta, before, "decrease exceeds the lot's current stock")
        if delta > self._config.max_manual_increase:
            self._reject(
                lot_id, delta, before,
                f"increase exceeds the limit of {self._config.max_manual_increase}",
            )
        if after > initial:
            self._reject(lot_id, delta, before, "stock would exceed the lot's initial quantity")

    @staticmethod
    def _reject(lot_id: UUID, delta: Decimal, before: Decimal, reason: str) -> None:
        logger.warning(
            "adjustment_rejected",
            extra={
                "lot_id": str(lot_id),
                "quantity_delta": str(delta),
                "stock_quantity": str(before),
                "reason": reason,
            },
        )
        raise AdjustmentOutOfBoundsError(
            lot_id=str(lot_id),
            quantity_delta=str(delta),
            stock_quantity=str(before),
            reason=reason,
        )
