"""
Service layer for the product catalog.

Only registration and lookup live here; catalog editing, images and
categories belong to the client application.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import ProductInfo, UnitOfMeasure
from stock_kernel.domain.values import (
    ZERO,
    require_text,
    to_enum,
    to_non_negative_money,
    to_quantity,
)
from stock_kernel.exceptions import ProductNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService

logger = get_logger("services.product")


def product_to_dto(product: Product) -> ProductInfo:
    return ProductInfo(
        product_id=product.id,
        name=product.name,
        unit_of_measure=UnitOfMeasure(product.unit_of_measure),
        sale_price=product.sale_price,
        low_stock_threshold=product.low_stock_threshold,
        sold_by_weight=product.sold_by_weight,
        is_active=product.is_active,
    )


class ProductService(BaseService[Product]):
    """Registers products and resolves their effective thresholds."""

    def register_product(
        self,
        name: str,
        unit_of_measure: UnitOfMeasure | str,
        sale_price: Decimal | str | int,
        actor_id: UUID,
        low_stock_threshold: Decimal | str | int | None = None,
        sold_by_weight: bool = False,
    ) -> ProductInfo:
        """
        Register a new product.

        Raises:
            ValidationError: empty or duplicate name, unknown unit, negative
                price or threshold.
        """
        clean_name = require_text(name, "name", 200)
        unit = to_enum(UnitOfMeasure, unit_of_measure, "unit_of_measure")
        price = to_non_negative_money(sale_price, "sale_price")

        threshold = None
        if low_stock_threshold is not None:
            threshold = to_quantity(
                low_stock_threshold, self._config.quantity_places, "low_stock_threshold",
            )
            if threshold < ZERO:
                raise ValidationError("low_stock_threshold", str(threshold), "must be >= 0")

        existing = self.session.execute(
            select(Product.id).where(Product.name == clean_name)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError("name", clean_name, "a product with this name already exists")

        product = Product(
            name=clean_name,
            unit_of_measure=unit.value,
            sale_price=price,
            low_stock_threshold=threshold,
            sold_by_weight=sold_by_weight,
            is_active=True,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_registered",
            extra={
                "product_id": str(product.id),
                "product_name": clean_name,
                "unit_of_measure": unit.value,
            },
        )
        return product_to_dto(product)

    def _get_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def get_product(self, product_id: UUID) -> ProductInfo:
        """
        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        return product_to_dto(self._get_product(product_id))

    def lock_product(self, product_id: UUID) -> Product:
        """Take the per-product write lock (``SELECT ... FOR UPDATE``).

        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        stmt = self._lock(select(Product).where(Product.id == product_id))
        product = self.session.execute(stmt).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product
