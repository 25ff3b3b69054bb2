"""
Service layer for supplier purchases.

A purchase header and one lot per line are written in the same flush
sequence; ``total_cost`` is ``sum(quantity * unit_cost)`` rounded to cents.
Cash-paid purchases become drawer outflows on ``purchase_date``.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import PaymentMethod, PurchaseInfo, PurchaseLineRequest
from stock_kernel.domain.values import (
    sum_money,
    to_enum,
    to_non_negative_money,
    to_positive_quantity,
)
from stock_kernel.exceptions import PurchaseNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.purchase import Purchase
from stock_kernel.selectors.report_selector import purchase_to_dto
from stock_kernel.services.base import BaseService
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.purchase")


class PurchaseService(BaseService[Purchase]):
    """Records purchases and the lots they bring into stock."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock, config)
        self._lots = LotStore(session, self._clock, self._config)

    def record_purchase(
        self,
        items: Sequence[PurchaseLineRequest],
        payment_method: PaymentMethod | str,
        actor_id: UUID,
        supplier_name: str | None = None,
        notes: str | None = None,
        purchase_date: date | None = None,
    ) -> PurchaseInfo:
        """
        Record a purchase and create one lot per line.

        Raises:
            ValidationError: empty purchase or unknown payment method.
            InvalidQuantityError / InvalidAmountError: bad line values.
            ProductNotFoundError: a line names an unknown product.
        """
        if not items:
            raise ValidationError("items", "[]", "a purchase needs at least one line")
        method = to_enum(PaymentMethod, payment_method, "payment_method")
        places = self._config.quantity_places

        lines = []
        for index, item in enumerate(items):
            quantity = to_positive_quantity(item.quantity, places, f"items[{index}].quantity")
            unit_cost = to_non_negative_money(item.unit_cost, f"items[{index}].unit_cost")
            lines.append((item, quantity, unit_cost))

        total_cost = sum_money(quantity * unit_cost for _, quantity, unit_cost in lines)

        purchase = Purchase(
            purchase_date=purchase_date or self._today(),
            payment_method=method.value,
            total_cost=total_cost,
            supplier_name=(supplier_name or "").strip() or None,
            notes=notes,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(purchase)
        self.session.flush()

        lot_ids = []
        for item, quantity, unit_cost in lines:
            lot = self._lots.create_lot(
                product_id=item.product_id,
                initial_quantity=quantity,
                purchase_price=unit_cost,
                purchase_id=purchase.id,
                expiration_date=item.expiration_date,
            )
            lot_ids.append(lot.lot_id)

        logger.info(
            "purchase_recorded",
            extra={
                "purchase_id": str(purchase.id),
                "purchase_date": purchase.purchase_date.isoformat(),
                "payment_method": method.value,
                "total_cost": str(total_cost),
                "line_count": len(lines),
            },
        )
        return purchase_to_dto(purchase, tuple(lot_ids))

    def get_purchase(self, purchase_id: UUID) -> PurchaseInfo:
        purchase = self.session.get(Purchase, purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError(str(purchase_id))
        return purchase_to_dto(purchase)
