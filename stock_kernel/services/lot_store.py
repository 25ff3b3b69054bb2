"""
LotStore -- entity store for inventory lots.

Responsibility:
    Creates lots and serves them back in FIFO order.  The order defined
    by ``models.inventory_lot.FIFO_ORDER`` is the contract every consumer
    of lots relies on:

        expiration_date ASC (lots without one last), created_at ASC, id ASC

Architecture position:
    Kernel > Services.  Flush-only, like every service.

Invariants enforced:
    - initial_quantity > 0 and purchase_price >= 0 at creation.
    - stock_quantity == initial_quantity at creation.
    - Every lot references an existing product and purchase.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import InventoryLotInfo
from stock_kernel.domain.values import to_non_negative_money, to_positive_quantity
from stock_kernel.exceptions import (
    LotNotFoundError,
    ProductNotFoundError,
    PurchaseNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory_lot import FIFO_ORDER, InventoryLot
from stock_kernel.models.product import Product
from stock_kernel.models.purchase import Purchase
from stock_kernel.services.base import BaseService

logger = get_logger("services.lot_store")


def lot_to_dto(lot: InventoryLot) -> InventoryLotInfo:
    return InventoryLotInfo(
        lot_id=lot.id,
        product_id=lot.product_id,
        initial_quantity=lot.initial_quantity,
        stock_quantity=lot.stock_quantity,
        purchase_price=lot.purchase_price,
        purchase_id=lot.purchase_id,
        created_at=lot.created_at,
        expiration_date=lot.expiration_date,
    )


class LotStore(BaseService[InventoryLot]):
    """Creates inventory lots and lists them in FIFO order."""

    def create_lot(
        self,
        product_id: UUID,
        initial_quantity: Decimal | str | int,
        purchase_price: Decimal | str | int,
        purchase_id: UUID,
        expiration_date: date | None = None,
    ) -> InventoryLotInfo:
        """
        Create a lot holding ``initial_quantity`` of a product.

        Preconditions:
            - ``initial_quantity`` > 0 after rounding to the configured
              quantity places.
            - ``purchase_price`` >= 0.
            - The product and the purchase exist.

        Postconditions:
            - ``stock_quantity == initial_quantity``.

        Raises:
            InvalidQuantityError: initial_quantity <= 0 or malformed.
            InvalidAmountError: purchase_price < 0 or malformed.
            ProductNotFoundError / PurchaseNotFoundError.
        """
        quantity = to_positive_quantity(
            initial_quantity, self._config.quantity_places, "initial_quantity",
        )
        price = to_non_negative_money(purchase_price, "purchase_price")

        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))
        if self.session.get(Purchase, purchase_id) is None:
            raise PurchaseNotFoundError(str(purchase_id))

        lot = InventoryLot(
            product_id=product_id,
            purchase_id=purchase_id,
            initial_quantity=quantity,
            stock_quantity=quantity,
            purchase_price=price,
            expiration_date=expiration_date,
            created_at=self._clock.now(),
        )
        self.session.add(lot)
        self.session.flush()

        logger.info(
            "lot_created",
            extra={
                "lot_id": str(lot.id),
                "product_id": str(product_id),
                "purchase_id": str(purchase_id),
                "initial_quantity": str(quantity),
                "expiration_date": expiration_date.isoformat() if expiration_date else None,
            },
        )
        return lot_to_dto(lot)

    def list_lots(
        self,
        product_id: UUID,
        include_depleted: bool = True,
    ) -> list[InventoryLotInfo]:
        """All lots of a product in FIFO order."""
        stmt = select(InventoryLot).where(InventoryLot.product_id == product_id)
        if not include_depleted:
            stmt = stmt.where(InventoryLot.stock_quantity > 0)
        stmt = stmt.order_by(*FIFO_ORDER)
        return [lot_to_dto(lot) for lot in self.session.execute(stmt).scalars()]

    def lock_lots(self, product_id: UUID) -> list[InventoryLot]:
        """Non-depleted lots of a product, row-locked, in FIFO order.

        Callers must already hold the product lock.
        """
        stmt = self._lock(
            select(InventoryLot)
            .where(InventoryLot.product_id == product_id)
            .where(InventoryLot.stock_quantity > 0)
            .order_by(*FIFO_ORDER)
        )
        return list(self.session.execute(stmt).scalars())

    def lock_lot(self, lot_id: UUID) -> InventoryLot:
        """
        Raises:
            LotNotFoundError: If the lot doesn't exist.
        """
        stmt = self._lock(select(InventoryLot).where(InventoryLot.id == lot_id))
        lot = self.session.execute(stmt).scalar_one_or_none()
        if lot is None:
            raise LotNotFoundError(str(lot_id))
        return lot

    def get_lot(self, lot_id: UUID) -> InventoryLotInfo:
        lot = self.session.get(InventoryLot, lot_id)
        if lot is None:
            raise LotNotFoundError(str(lot_id))
        return lot_to_dto(lot)
