"""Tests for AdjustmentLedger: signed corrections against a single lot."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.dtos import AdjustmentReason, LotStatus
from stock_kernel.exceptions import (
    AdjustmentOutOfBoundsError,
    InvalidQuantityError,
    LotNotFoundError,
    ValidationError,
)
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.adjustment_ledger import AdjustmentLedger
from stock_kernel.services.lot_store import LotStore


@pytest.fixture
def ledger(session, clock, config):
    return AdjustmentLedger(session, clock, config)


class TestDecreases:

    def test_shrinkage_reduces_stock(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "10")
        record = ledger.adjust(lot.lot_id, "-2.5", "merma", uuid4(), note="humedad")

        assert record.reason is AdjustmentReason.MERMA
        assert record.stock_before == Decimal("10")
        assert record.stock_after == Decimal("7.5")
        assert record.quantity_delta == Decimal("-2.5")
        assert record.note == "humedad"

    def test_cannot_remove_more_than_stock(self, ledger, session, clock, config, make_product, make_lot):
        lot = make_lot(make_product().product_id, "3")

        with pytest.raises(AdjustmentOutOfBoundsError):
            ledger.adjust(lot.lot_id, "-5", AdjustmentReason.DANO, uuid4())

        assert LotStore(session, clock, config).get_lot(lot.lot_id).stock_quantity == Decimal("3")

    def test_removing_exact_stock_depletes(self, ledger, session, clock, config, make_product, make_lot):
        product = make_product()
        lot = make_lot(product.product_id, "3", expiration_date=date(2024, 6, 1))

        ledger.adjust(lot.lot_id, "-3", AdjustmentReason.CADUCADO, uuid4())

        listing = InventorySelector(session, clock, config).list_lots(product.product_id)
        assert listing[0].stock_quantity == Decimal("0")
        assert listing[0].status is LotStatus.DEPLETED

    def test_decrease_reason_requires_negative_delta(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "3")
        with pytest.raises(InvalidQuantityError):
            ledger.adjust(lot.lot_id, "1", "merma", uuid4())


class TestIncreases:

    def test_manual_increase_up_to_initial(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "10")
        ledger.adjust(lot.lot_id, "-4", "merma", uuid4())
        record = ledger.adjust(lot.lot_id, "4", "ajuste_manual", uuid4())
        assert record.stock_after == Decimal("10")

    def test_manual_increase_cannot_exceed_initial(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "10")
        ledger.adjust(lot.lot_id, "-1", "merma", uuid4())
        with pytest.raises(AdjustmentOutOfBoundsError):
            ledger.adjust(lot.lot_id, "2", "ajuste_manual", uuid4())

    def test_manual_increase_ceiling(self, session, clock, make_product, make_lot):
        config = LedgerConfig(max_manual_increase=Decimal("1"))
        lot = make_lot(make_product().product_id, "10")
        ledger = AdjustmentLedger(session, clock, config)
        ledger.adjust(lot.lot_id, "-5", "merma", uuid4())

        with pytest.raises(AdjustmentOutOfBoundsError) as exc_info:
            ledger.adjust(lot.lot_id, "2", "ajuste_manual", uuid4())
        assert exc_info.value.code == "ADJUSTMENT_OUT_OF_BOUNDS"

    def test_manual_requires_positive_delta(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "10")
        with pytest.raises(InvalidQuantityError):
            ledger.adjust(lot.lot_id, "-1", "ajuste_manual", uuid4())


class TestValidation:

    def test_zero_delta_rejected(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "3")
        with pytest.raises(InvalidQuantityError):
            ledger.adjust(lot.lot_id, "0", "merma", uuid4())

    def test_unknown_reason_rejected(self, ledger, make_product, make_lot):
        lot = make_lot(make_product().product_id, "3")
        with pytest.raises(ValidationError):
            ledger.adjust(lot.lot_id, "-1", "robo", uuid4())

    def test_unknown_lot(self, ledger):
        with pytest.raises(LotNotFoundError):
            ledger.adjust(uuid4(), "-1", "merma", uuid4())

    def test_rejection_is_logged(self, ledger, make_product, make_lot, captured_logs):
        lot = make_lot(make_product().product_id, "1")
        with pytest.raises(AdjustmentOutOfBoundsError):
            ledger.adjust(lot.lot_id, "-2", "merma", uuid4())
        rejected = [r for r in captured_logs() if r["message"] == "adjustment_rejected"]
        assert rejected and rejected[0]["level"] == "WARNING"


class TestHistory:

    def test_history_newest_first_with_product_name(self, ledger, session, clock, config, make_product, make_lot):
        product = make_product("Queso Cotija")
        lot = make_lot(product.product_id, "10")
        ledger.adjust(lot.lot_id, "-1", "merma", uuid4())
        clock.advance(60)
        ledger.adjust(lot.lot_id, "-2", "daño", uuid4())

        history = InventorySelector(session, clock, config).list_adjustments(product.product_id)

        assert [h.reason for h in history] == [AdjustmentReason.DANO, AdjustmentReason.MERMA]
        assert all(h.product_name == "Queso Cotija" for h in history)

    def test_history_limit_and_filter(self, ledger, session, clock, config, make_product, make_lot):
        first = make_product()
        second = make_product()
        lot_a = make_lot(first.product_id, "10")
        lot_b = make_lot(second.product_id, "10")
        for _ in range(3):
            ledger.adjust(lot_a.lot_id, "-1", "merma", uuid4())
            clock.advance(1)
        ledger.adjust(lot_b.lot_id, "-1", "merma", uuid4())

        selector = InventorySelector(session, clock, config)
        assert len(selector.list_adjustments(limit=2)) == 2
        assert len(selector.list_adjustments(first.product_id)) == 3
        assert len(selector.list_adjustments()) == 4
