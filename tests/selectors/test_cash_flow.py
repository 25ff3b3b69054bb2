"""
Tests for CashFlowAggregator.

Only cash movements reach cash_flow; card and transfer sales, and
non-cash purchases and expenses, are reported but never reconciled.
"""

from datetime import date
from decimal import Decimal

import pytest

from stock_kernel.domain.dtos import (
    DifferenceType,
    PurchaseLineRequest,
    SaleLineRequest,
)
from stock_kernel.exceptions import SessionNotFoundError
from stock_kernel.selectors.cash_flow import CashFlowAggregator
from stock_kernel.services.closure_coordinator import ClosureCoordinator
from stock_kernel.services.expense_service import ExpenseService
from stock_kernel.services.sale_service import SaleService


@pytest.fixture
def aggregator(session, clock, config):
    return CashFlowAggregator(session, clock, config)


@pytest.fixture
def sell(session, clock, config, actor_id):
    sales = SaleService(session, clock, config)

    def _sell(product_id, quantity, method):
        return sales.consume_for_sale([SaleLineRequest(product_id, quantity)], actor_id, method)

    return _sell


@pytest.fixture
def spend(session, clock, config, actor_id):
    expenses = ExpenseService(session, clock, config)

    def _spend(amount, method, expense_date=None):
        return expenses.record_expense(
            amount, "Gasto", "servicios", method, actor_id, expense_date=expense_date,
        )

    return _spend


class TestDailyFlow:

    def test_empty_day(self, aggregator, today):
        flow = aggregator.daily_flow()

        assert flow.flow_date == today
        assert flow.sales.count == 0
        assert flow.sales.total == Decimal("0.00")
        assert flow.cash_flow.net == Decimal("0.00")
        assert flow.closure.is_closed is False

    def test_sales_by_payment_method(self, aggregator, make_product, make_lot, sell):
        product = make_product(sale_price="40.00")
        make_lot(product.product_id, "20")
        sell(product.product_id, "2", "efectivo")
        sell(product.product_id, "1.5", "efectivo")
        sell(product.product_id, "3", "tarjeta")
        sell(product.product_id, "1", "transferencia")

        flow = aggregator.daily_flow()

        assert flow.sales.count == 4
        assert flow.sales.cash == Decimal("140.00")
        assert flow.sales.card == Decimal("120.00")
        assert flow.sales.transfer == Decimal("40.00")
        assert flow.sales.total == Decimal("300.00")
        assert flow.cash_flow.cash_in == Decimal("140.00")

    def test_non_cash_outflows_excluded(self, aggregator, make_product, purchase_service, actor_id, spend):
        product = make_product()
        purchase_service.record_purchase(
            [PurchaseLineRequest(product.product_id, "4", "12.50")], "efectivo", actor_id,
        )
        purchase_service.record_purchase(
            [PurchaseLineRequest(product.product_id, "10", "20.00")], "tarjeta", actor_id,
        )
        spend("35", "efectivo")
        spend("60", "transferencia")

        flow = aggregator.daily_flow()

        assert flow.expenses.purchases == Decimal("50.00")
        assert flow.expenses.operations == Decimal("35.00")
        assert flow.expenses.total == Decimal("85.00")
        assert flow.expenses.non_cash_purchases == Decimal("200.00")
        assert flow.expenses.non_cash_operations == Decimal("60.00")
        assert flow.cash_flow.cash_out == Decimal("85.00")
        assert flow.cash_flow.net == Decimal("-85.00")

    def test_other_dates_ignored(self, aggregator, spend):
        spend("10", "efectivo", expense_date=date(2024, 6, 14))

        assert aggregator.daily_flow().expenses.operations == Decimal("0.00")
        assert aggregator.daily_flow(date(2024, 6, 14)).expenses.operations == Decimal("10.00")

    def test_to_dict_shape(self, aggregator, spend):
        spend("10", "efectivo")

        data = aggregator.daily_flow().to_dict()

        assert data["date"] == "2024-06-15"
        assert set(data) == {"date", "sales", "expenses", "cash_flow", "closure"}
        assert data["cash_flow"] == {
            "in": Decimal("0.00"),
            "out": Decimal("10.00"),
            "net": Decimal("-10.00"),
        }
        assert data["closure"]["is_closed"] is False
        assert data["closure"]["difference_type"] is None


class TestSessions:

    @pytest.fixture
    def close(self, session, clock, config, fake_authorizer, manager_credentials, actor_id):
        coordinator = ClosureCoordinator(session, fake_authorizer, clock, config)

        def _close(starting, ending, session_date=None):
            return coordinator.close_cash_drawer(
                starting, ending, actor_id, manager_credentials, session_date=session_date,
            )

        return _close

    def test_closure_block_after_close(self, aggregator, close, spend):
        spend("10", "efectivo")
        close("100", "85")

        flow = aggregator.daily_flow()

        assert aggregator.is_cash_closed() is True
        assert flow.closure.is_closed is True
        assert flow.closure.starting_cash == Decimal("100.00")
        assert flow.closure.ending_cash == Decimal("85.00")
        assert flow.closure.difference == Decimal("-5.00")
        assert flow.closure.difference_type is DifferenceType.DEFICIT
        assert flow.to_dict()["closure"]["difference_type"] == "deficit"

    def test_list_sessions_newest_first(self, aggregator, close):
        close("0", "0", session_date=date(2024, 6, 13))
        close("0", "0", session_date=date(2024, 6, 15))
        close("0", "0", session_date=date(2024, 6, 14))

        dates = [s.session_date for s in aggregator.list_cash_sessions()]
        assert dates == [date(2024, 6, 15), date(2024, 6, 14), date(2024, 6, 13)]
        assert len(aggregator.list_cash_sessions(limit=1)) == 1

    def test_get_session(self, aggregator, close, today):
        close("20", "20")

        found = aggregator.get_session(today)
        assert found.closed is True
        assert found.difference_type is DifferenceType.EXACT

        with pytest.raises(SessionNotFoundError):
            aggregator.get_session(date(2024, 1, 1))
        assert aggregator.find_session(date(2024, 1, 1)) is None


class TestExpenses:

    def test_list_expenses_oldest_first(self, aggregator, spend, clock):
        first = spend("10", "efectivo")
        clock.advance(5)
        second = spend("20", "tarjeta")
        spend("30", "efectivo", expense_date=date(2024, 6, 14))

        listed = aggregator.list_expenses()
        assert [e.expense_id for e in listed] == [first.expense_id, second.expense_id]
