"""
Cash drawer reconciliation arithmetic.

    expected_ending = starting_cash + cash_flow.net
    difference      = ending_cash - expected_ending

    |difference| <  epsilon  ->  EXACT
     difference  >  0        ->  SURPLUS
     difference  <  0        ->  DEFICIT

All inputs are money-rounded before use and every result is rounded again.
"""

from __future__ import annotations

from decimal import Decimal

from stock_kernel.domain.dtos import CashFlowTotals, DifferenceType, Reconciliation
from stock_kernel.domain.values import ZERO, round_money, to_non_negative_money


def classify_difference(difference: Decimal, epsilon: Decimal) -> DifferenceType:
    if abs(difference) < epsilon:
        return DifferenceType.EXACT
    if difference > ZERO:
        return DifferenceType.SURPLUS
    return DifferenceType.DEFICIT


def reconcile(
    starting_cash: Decimal | str | int,
    ending_cash: Decimal | str | int,
    cash_flow: CashFlowTotals,
    epsilon: Decimal,
) -> Reconciliation:
    """Reconcile declared drawer cash against the day's cash flow.

    Raises:
        InvalidAmountError: either declared amount is negative or malformed.
    """
    starting = to_non_negative_money(starting_cash, "starting_cash")
    ending = to_non_negative_money(ending_cash, "ending_cash")

    expected = round_money(starting + cash_flow.net)
    difference = round_money(ending - expected)

    return Reconciliation(
        starting_cash=starting,
        ending_cash=ending,
        expected_ending=expected,
        difference=difference,
        difference_type=classify_difference(difference, epsilon),
    )
