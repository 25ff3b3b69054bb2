"""
Module: stock_kernel.selectors.inventory_selector
Responsibility: Read side of the lot ledger -- lot listings with derived
    status, the per-product overview, alerts, KPIs and adjustment history.
Architecture position: Kernel > Selectors.  Read-only.

Every figure is recomputed from the persisted lots on each call: a
product's total stock is ``sum(stock_quantity)`` over its lots and is never
read from a cached column.  Concurrent writers are tolerated by re-reading.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import (
    AdjustmentReason,
    AdjustmentRecord,
    AlertType,
    InventoryAlert,
    InventoryKpis,
    LotListing,
    ProductStockSummary,
    UnitOfMeasure,
)
from stock_kernel.domain.status import (
    aggregate_product,
    classify,
    days_until_expiry,
    is_low_stock,
    is_near_expiry,
    percentage_remaining,
)
from stock_kernel.domain.values import to_non_negative_quantity
from stock_kernel.exceptions import ProductNotFoundError, ValidationError
from stock_kernel.models.adjustment import InventoryAdjustment
from stock_kernel.models.inventory_lot import FIFO_ORDER, InventoryLot
from stock_kernel.models.product import Product
from stock_kernel.models.purchase import Purchase
from stock_kernel.selectors.base import BaseSelector

DEFAULT_ADJUSTMENT_LIMIT = 50


class InventorySelector(BaseSelector[InventoryLot]):
    """Lot listings, overview, alerts and adjustment history."""

    def _threshold(self, product: Product) -> Decimal:
        if product.low_stock_threshold is not None:
            return product.low_stock_threshold
        return self._config.low_stock_threshold

    def list_lots(
        self,
        product_id: UUID,
        include_depleted: bool = True,
        today: date | None = None,
    ) -> list[LotListing]:
        """
        A product's lots in FIFO order with status, percentage remaining and
        days until expiry.

        Raises:
            ProductNotFoundError: unknown product.
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        as_of = today or self._today()
        threshold = self._threshold(product)
        near_days = self._config.near_expiry_days

        stmt = (
            select(InventoryLot, Purchase.supplier_name, Purchase.purchase_date)
            .join(Purchase, Purchase.id == InventoryLot.purchase_id)
            .where(InventoryLot.product_id == product_id)
        )
        if not include_depleted:
            stmt = stmt.where(InventoryLot.stock_quantity > 0)
        stmt = stmt.order_by(*FIFO_ORDER)

        listings = []
        for lot, supplier_name, purchase_date in self.session.execute(stmt):
            listings.append(LotListing(
                lot_id=lot.id,
                product_id=lot.product_id,
                initial_quantity=lot.initial_quantity,
                stock_quantity=lot.stock_quantity,
                purchase_price=lot.purchase_price,
                purchase_id=lot.purchase_id,
                created_at=lot.created_at,
                expiration_date=lot.expiration_date,
                status=classify(lot, as_of, threshold, near_days),
                percentage_remaining=percentage_remaining(lot),
                days_until_expiry=days_until_expiry(lot.expiration_date, as_of),
                supplier_name=supplier_name,
                purchase_date=purchase_date,
            ))
        return listings

    def _active_lots_by_product(self) -> dict[UUID, list[InventoryLot]]:
        lots = self.session.execute(
            select(InventoryLot)
            .where(InventoryLot.stock_quantity > 0)
            .order_by(*FIFO_ORDER)
        ).scalars()
        grouped: dict[UUID, list[InventoryLot]] = defaultdict(list)
        for lot in lots:
            grouped[lot.product_id].append(lot)
        return grouped

    def inventory_overview(self, today: date | None = None) -> list[ProductStockSummary]:
        """One row per active product, ordered by name.

        Products without stock appear with zero totals.
        """
        as_of = today or self._today()
        products = self.session.execute(
            select(Product).where(Product.is_active.is_(True)).order_by(Product.name)
        ).scalars()
        lots_by_product = self._active_lots_by_product()

        rows = []
        for product in products:
            aggregate = aggregate_product(
                lots_by_product.get(product.id, []),
                as_of,
                self._threshold(product),
                self._config.near_expiry_days,
            )
            rows.append(ProductStockSummary(
                product_id=product.id,
                product_name=product.name,
                unit_of_measure=UnitOfMeasure(product.unit_of_measure),
                total_stock=aggregate.total_stock,
                active_lots=aggregate.active_lots,
                has_low_stock=aggregate.has_low_stock,
                has_near_expiry=aggregate.has_near_expiry,
                avg_percentage_remaining=aggregate.avg_percentage_remaining,
                min_percentage_remaining=aggregate.min_percentage_remaining,
            ))
        return rows

    def inventory_alerts(
        self,
        low_stock_threshold: Decimal | str | int | None = None,
        days_to_expiry: int | None = None,
        today: date | None = None,
    ) -> list[InventoryAlert]:
        """
        Low-stock and near-expiry alerts over non-depleted lots.

        A lot can raise both alerts.  ``low_stock_threshold`` overrides every
        product's threshold when given; ``days_to_expiry`` defaults to the
        configured near-expiry window.

        Raises:
            InvalidQuantityError: threshold is not a number or is negative.
            ValidationError: days_to_expiry is not a whole number >= 0.
        """
        if low_stock_threshold is not None:
            low_stock_threshold = to_non_negative_quantity(
                low_stock_threshold, self._config.quantity_places, "low_stock_threshold",
            )
        if days_to_expiry is not None and (
            isinstance(days_to_expiry, bool) or not isinstance(days_to_expiry, int) or days_to_expiry < 0
        ):
            raise ValidationError("days_to_expiry", repr(days_to_expiry), "must be a whole number of days >= 0")
        as_of = today or self._today()
        window = self._config.near_expiry_days if days_to_expiry is None else days_to_expiry

        products = {
            p.id: p for p in self.session.execute(select(Product)).scalars()
        }
        alerts: list[InventoryAlert] = []
        for product_id, lots in self._active_lots_by_product().items():
            product = products[product_id]
            threshold = low_stock_threshold if low_stock_threshold is not None else self._threshold(product)
            for lot in lots:
                if is_low_stock(lot, threshold):
                    alerts.append(self._alert(AlertType.LOW_STOCK, lot, product, as_of))
                if is_near_expiry(lot, as_of, window):
                    alerts.append(self._alert(AlertType.NEAR_EXPIRY, lot, product, as_of))

        alerts.sort(key=lambda a: (
            a.alert_type.value,
            a.expiration_date is None,
            a.expiration_date or date.max,
            a.product_name,
        ))
        return alerts

    @staticmethod
    def _alert(alert_type: AlertType, lot: InventoryLot, product: Product, as_of: date) -> InventoryAlert:
        return InventoryAlert(
            alert_type=alert_type,
            lot_id=lot.id,
            product_id=product.id,
            product_name=product.name,
            stock_quantity=lot.stock_quantity,
            expiration_date=lot.expiration_date,
            days_until_expiry=days_until_expiry(lot.expiration_date, as_of),
        )

    def list_adjustments(
        self,
        product_id: UUID | None = None,
        limit: int = DEFAULT_ADJUSTMENT_LIMIT,
    ) -> list[AdjustmentRecord]:
        """Adjustment history, newest first."""
        stmt = (
            select(InventoryAdjustment, Product.name)
            .join(Product, Product.id == InventoryAdjustment.product_id)
        )
        if product_id is not None:
            stmt = stmt.where(InventoryAdjustment.product_id == product_id)
        stmt = stmt.order_by(
            InventoryAdjustment.created_at.desc(),
            InventoryAdjustment.id.desc(),
        ).limit(limit)

        return [
            AdjustmentRecord(
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
            for adjustment, product_name in self.session.execute(stmt)
        ]

    def total_stock(self, product_id: UUID) -> Decimal:
        """``sum(stock_quantity)`` over the product's persisted lots."""
        quantities = self.session.execute(
            select(InventoryLot.stock_quantity).where(InventoryLot.product_id == product_id)
        ).scalars()
        return sum(quantities, Decimal("0"))


def inventory_kpis(overview: Sequence[ProductStockSummary]) -> InventoryKpis:
    """Headline figures over an inventory overview."""
    count = len(overview)
    avg = sum(row.avg_percentage_remaining for row in overview) / count if count else 0.0
    return InventoryKpis(
        total_products=count,
        low_stock_products=sum(1 for row in overview if row.has_low_stock),
        near_expiry_products=sum(1 for row in overview if row.has_near_expiry),
        total_lots=sum(row.active_lots for row in overview),
        avg_stock_percentage=math.floor(avg + 0.5),
    )
