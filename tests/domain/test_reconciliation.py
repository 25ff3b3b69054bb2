"""Tests for cash drawer reconciliation arithmetic."""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stock_kernel.domain.dtos import CashFlowTotals, DifferenceType
from stock_kernel.domain.reconciliation import classify_difference, reconcile
from stock_kernel.exceptions import InvalidAmountError

EPSILON = Decimal("0.01")


def flow(cash_in: str, cash_out: str) -> CashFlowTotals:
    i, o = Decimal(cash_in), Decimal(cash_out)
    return CashFlowTotals(cash_in=i, cash_out=o, net=i - o)


class TestReconcile:
    """100 starting + 250 cash sales - 80 cash purchases - 20 cash expenses."""

    def test_expected_ending(self):
        result = reconcile("100", "250", flow("250", "100"), EPSILON)
        assert result.expected_ending == Decimal("250.00")

    def test_exact_match(self):
        result = reconcile("100", "250", flow("250", "100"), EPSILON)
        assert result.difference == Decimal("0.00")
        assert result.difference_type is DifferenceType.EXACT

    def test_surplus(self):
        result = reconcile("100", "255", flow("250", "100"), EPSILON)
        assert result.difference == Decimal("5.00")
        assert result.difference_type is DifferenceType.SURPLUS

    def test_deficit(self):
        result = reconcile("100", "240.50", flow("250", "100"), EPSILON)
        assert result.difference == Decimal("-9.50")
        assert result.difference_type is DifferenceType.DEFICIT

    def test_inputs_rounded_to_cents(self):
        result = reconcile("100.004", "250.005", flow("250", "100"), EPSILON)
        assert result.starting_cash == Decimal("100.00")
        assert result.ending_cash == Decimal("250.01")
        assert result.difference == Decimal("0.01")
        assert result.difference_type is DifferenceType.SURPLUS

    def test_negative_cash_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            reconcile("-1", "0", flow("0", "0"), EPSILON)
        assert exc_info.value.field == "starting_cash"

    def test_malformed_cash_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            reconcile("100", "lots", flow("0", "0"), EPSILON)
        assert exc_info.value.field == "ending_cash"


class TestClassifyDifference:

    @pytest.mark.parametrize(
        "difference, expected",
        [
            ("0", DifferenceType.EXACT),
            ("0.009", DifferenceType.EXACT),
            ("-0.009", DifferenceType.EXACT),
            ("0.01", DifferenceType.SURPLUS),
            ("-0.01", DifferenceType.DEFICIT),
        ],
    )
    def test_epsilon_boundary(self, difference, expected):
        assert classify_difference(Decimal(difference), EPSILON) is expected

    def test_wider_epsilon(self):
        assert classify_difference(Decimal("0.50"), Decimal("1")) is DifferenceType.EXACT


money = st.decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2)


@given(starting=money, ending=money, cash_in=money, cash_out=money)
@settings(max_examples=200, deadline=None)
def test_difference_is_ending_minus_expected(starting, ending, cash_in, cash_out):
    result = reconcile(starting, ending, CashFlowTotals(cash_in, cash_out, cash_in - cash_out), EPSILON)
    assert result.expected_ending == starting + cash_in - cash_out
    assert result.difference == ending - result.expected_ending
    if result.difference == 0:
        assert result.difference_type is DifferenceType.EXACT
    elif result.difference > 0:
        assert result.difference_type is DifferenceType.SURPLUS
    else:
        assert result.difference_type is DifferenceType.DEFICIT
