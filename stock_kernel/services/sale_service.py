"""
Service layer for sales.

``consume_for_sale`` is one unit of work: lock and deplete the lots of every
product in the cart (StockAllocator), then write the Sale, its SaleItems and
one SaleAllocation per (item, lot) pair.  Any failure leaves no trace once
the caller rolls back.

Pricing:
    ``price_at_sale`` defaults to the product's ``sale_price``.
    ``line_total = round(quantity * price_at_sale)``;
    ``total_amount = sum(line_total)``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import (
    PaymentMethod,
    SaleLineRequest,
    SaleReceipt,
    SaleStatus,
)
from stock_kernel.domain.values import (
    round_money,
    sum_money,
    to_enum,
    to_non_negative_money,
    to_positive_quantity,
)
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.sale import Sale, SaleAllocation, SaleItem
from stock_kernel.selectors.report_selector import sale_to_dto
from stock_kernel.services.base import BaseService
from stock_kernel.services.product_service import ProductService
from stock_kernel.services.stock_allocator import StockAllocator

logger = get_logger("services.sale")


class SaleService(BaseService[Sale]):
    """Records sales against FIFO-allocated stock."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock, config)
        self._allocator = StockAllocator(session, self._clock, self._config)
        self._products = ProductService(session, self._clock, self._config)

    def _merge_lines(
        self,
        items: Sequence[SaleLineRequest],
    ) -> dict[UUID, tuple[Decimal, Decimal | None]]:
        """Fold repeated products into one line: {product_id: (qty, price)}."""
        places = self._config.quantity_places
        merged: dict[UUID, tuple[Decimal, Decimal | None]] = {}
        for index, item in enumerate(items):
            quantity = to_positive_quantity(item.quantity, places, f"items[{index}].quantity")
            price = None
            if item.unit_price is not None:
                price = to_non_negative_money(item.unit_price, f"items[{index}].unit_price")

            if item.product_id in merged:
                prior_qty, prior_price = merged[item.product_id]
                if price is not None and prior_price is not None and price != prior_price:
                    raise ValidationError(
                        f"items[{index}].unit_price", str(price),
                        "conflicts with an earlier line for the same product",
                    )
                merged[item.product_id] = (prior_qty + quantity, price if price is not None else prior_price)
            else:
                merged[item.product_id] = (quantity, price)
        return merged

    def consume_for_sale(
        self,
        items: Sequence[SaleLineRequest],
        actor_id: UUID,
        payment_method: PaymentMethod | str = PaymentMethod.EFECTIVO,
    ) -> SaleReceipt:
        """
        Sell a cart: deplete stock FIFO and record the sale.

        Raises:
            ValidationError: empty cart, unknown payment method, conflicting
                prices for one product.
            InvalidQuantityError / InvalidAmountError: bad line values.
            ProductNotFoundError: unknown product.
            StockShortageError: one or more products short; nothing mutated.
        """
        if not items:
            raise ValidationError("items", "[]", "a sale needs at least one line")
        method = to_enum(PaymentMethod, payment_method, "payment_method")
        merged = self._merge_lines(items)

        prices: dict[UUID, Decimal] = {}
        for product_id, (_, price) in merged.items():
            product = self._products.get_product(product_id)
            prices[product_id] = price if price is not None else round_money(product.sale_price)

        # Locks every product in id order, then plans and applies all lines.
        consumed = self._allocator.consume_many(
            {product_id: quantity for product_id, (quantity, _) in merged.items()}
        )

        sale = Sale(
            sale_date=self._today(),
            payment_method=method.value,
            total_amount=Decimal("0"),
            status=SaleStatus.COMPLETED.value,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(sale)

        line_totals = []
        for product_id, (quantity, _) in merged.items():
            line_total = round_money(quantity * prices[product_id])
            line_totals.append(line_total)
            item = SaleItem(
                product_id=product_id,
                quantity=quantity,
                price_at_sale=prices[product_id],
                line_total=line_total,
            )
            item.allocations = [
                SaleAllocation(
                    lot_id=allocation.lot_id,
                    quantity=allocation.quantity,
                    unit_cost=allocation.unit_cost,
                )
                for allocation in consumed[product_id].allocations
            ]
            sale.items.append(item)

        sale.total_amount = sum_money(line_totals)
        self.session.flush()

        with LogContext.bind(sale_id=sale.id, actor_id=actor_id):
            logger.info(
                "sale_recorded",
                extra={
                    "payment_method": method.value,
                    "total_amount": str(sale.total_amount),
                    "line_count": len(merged),
                    "sale_date": sale.sale_date.isoformat(),
                },
            )

        return sale_to_dto(sale)
