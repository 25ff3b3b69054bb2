"""Tests for money and quantity normalisation (stock_kernel/domain/values.py)."""

from decimal import Decimal

import pytest

from stock_kernel.domain.dtos import PaymentMethod
from stock_kernel.domain.values import (
    require_text,
    round_money,
    sum_money,
    to_enum,
    to_money,
    to_non_negative_money,
    to_positive_money,
    to_positive_quantity,
    to_quantity,
)
from stock_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    ValidationError,
)


class TestMoney:

    def test_rounds_half_up_to_cents(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money("2.344") == Decimal("2.34")
        assert to_money("-2.345") == Decimal("-2.35")

    def test_accepts_int_and_decimal(self):
        assert to_money(5) == Decimal("5.00")
        assert to_money(Decimal("1.1")) == Decimal("1.10")

    def test_rejects_float(self):
        with pytest.raises(InvalidAmountError):
            to_money(0.1)

    def test_rejects_bool(self):
        with pytest.raises(InvalidAmountError):
            to_money(True)

    @pytest.mark.parametrize("raw", ["abc", "", "NaN", "Infinity"])
    def test_rejects_non_numeric(self, raw):
        with pytest.raises(InvalidAmountError) as exc_info:
            to_money(raw, "starting_cash")
        assert exc_info.value.field == "starting_cash"
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_non_negative_allows_zero(self):
        assert to_non_negative_money("0") == Decimal("0.00")

    def test_non_negative_rejects_negative(self):
        with pytest.raises(InvalidAmountError):
            to_non_negative_money("-0.01")

    def test_positive_rejects_zero_after_rounding(self):
        with pytest.raises(InvalidAmountError):
            to_positive_money("0.004")

    def test_sum_money_rounds_result(self):
        assert sum_money([Decimal("0.005"), Decimal("0.005")]) == Decimal("0.01")
        assert sum_money([]) == Decimal("0.00")

    def test_round_money_is_two_places(self):
        assert round_money(Decimal("3")).as_tuple().exponent == -2


class TestQuantity:

    def test_rounds_to_configured_places(self):
        assert to_quantity("1.23456", 3) == Decimal("1.235")
        assert to_quantity("7", 0) == Decimal("7")

    def test_signed_quantity_allowed(self):
        assert to_quantity("-2", 3) == Decimal("-2.000")

    def test_positive_rejects_zero_and_negative(self):
        with pytest.raises(InvalidQuantityError):
            to_positive_quantity("0", 3)
        with pytest.raises(InvalidQuantityError):
            to_positive_quantity("-1", 3)

    def test_positive_rejects_value_that_rounds_to_zero(self):
        with pytest.raises(InvalidQuantityError):
            to_positive_quantity("0.0001", 3)

    def test_invalid_quantity_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            to_quantity("ten", 3)


class TestEnumsAndText:

    def test_to_enum_accepts_value_and_member(self):
        assert to_enum(PaymentMethod, "tarjeta", "payment_method") is PaymentMethod.TARJETA
        assert to_enum(PaymentMethod, PaymentMethod.EFECTIVO, "payment_method") is PaymentMethod.EFECTIVO

    def test_to_enum_lists_allowed_values(self):
        with pytest.raises(ValidationError) as exc_info:
            to_enum(PaymentMethod, "cheque", "payment_method")
        assert "efectivo" in exc_info.value.reason

    def test_require_text_strips(self):
        assert require_text("  queso  ", "name", 10) == "queso"

    def test_require_text_rejects_blank_and_long(self):
        with pytest.raises(ValidationError):
            require_text("   ", "name", 10)
        with pytest.raises(ValidationError):
            require_text("x" * 11, "name", 10)
