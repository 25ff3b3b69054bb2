"""
Tests for ReportSelector.

Cost of goods is priced from the lot allocations each sale recorded, so a
sale spanning two lots costs each slice at its own lot's purchase price.
"""

from datetime import date
from decimal import Decimal

import pytest

from stock_kernel.domain.dtos import PaymentMethod, PurchaseLineRequest, SaleLineRequest
from stock_kernel.exceptions import ValidationError
from stock_kernel.selectors.report_selector import ReportSelector
from stock_kernel.services.expense_service import ExpenseService
from stock_kernel.services.sale_service import SaleService

ONE_DAY = 24 * 60 * 60


@pytest.fixture
def reports(session, clock, config):
    return ReportSelector(session, clock, config)


@pytest.fixture
def spend(session, clock, config, actor_id):
    expenses = ExpenseService(session, clock, config)

    def _spend(amount, method, expense_date=None):
        return expenses.record_expense(
            amount, "Gasto", "servicios", method, actor_id, expense_date=expense_date,
        )

    return _spend


@pytest.fixture
def trading_day(session, clock, config, actor_id, make_product, purchase_service, spend):
    """
    One day of trade on 2024-06-15:
        purchases  4 kg @ 12.50 (efectivo) then 10 kg @ 20.00 (tarjeta)
        sales      6 kg cash + 1 kg card at 40.00
        expenses   35 cash + 60 transfer
    """
    product = make_product(sale_price="40.00")
    cheap = purchase_service.record_purchase(
        [PurchaseLineRequest(product.product_id, "4", "12.50")], "efectivo", actor_id,
        supplier_name="Lácteos del Valle",
    )
    clock.advance(1)
    dear = purchase_service.record_purchase(
        [PurchaseLineRequest(product.product_id, "10", "20.00")], "tarjeta", actor_id,
    )
    clock.advance(1)

    sales = SaleService(session, clock, config)
    first = sales.consume_for_sale([SaleLineRequest(product.product_id, "6")], actor_id, "efectivo")
    clock.advance(1)
    second = sales.consume_for_sale([SaleLineRequest(product.product_id, "1")], actor_id, "tarjeta")
    clock.advance(1)

    spend("35", "efectivo")
    clock.advance(1)
    spend("60", "transferencia")
    return product, (cheap, dear), (first, second)


class TestFinancialSummary:

    def test_single_day(self, reports, trading_day, today):
        summary = reports.financial_summary(today, today)

        assert summary.days == 1
        assert summary.sales.count == 2
        assert summary.sales.total == Decimal("280.00")
        assert summary.sales.cash == Decimal("240.00")
        assert summary.sales.card == Decimal("40.00")
        assert summary.average_daily_sales == Decimal("280.00")
        assert summary.purchases == Decimal("250.00")
        assert summary.expenses == Decimal("95.00")
        assert summary.total_costs == Decimal("345.00")

    def test_cost_of_goods_from_allocations(self, reports, trading_day, today):
        summary = reports.financial_summary(today, today)

        # 4 @ 12.50 + 2 @ 20.00 for the first sale, 1 @ 20.00 for the second
        assert summary.cost_of_goods == Decimal("110.00")
        assert summary.gross_profit == Decimal("170.00")
        assert summary.net_profit == Decimal("75.00")
        assert summary.gross_margin_percentage == Decimal("60.71")
        assert summary.cash_result == Decimal("-65.00")

    def test_range_is_inclusive(self, reports, trading_day, spend, today):
        spend("10", "efectivo", expense_date=date(2024, 6, 14))
        spend("99", "efectivo", expense_date=date(2024, 6, 16))

        summary = reports.financial_summary(date(2024, 6, 14), today)

        assert summary.days == 2
        assert summary.expenses == Decimal("105.00")
        assert summary.average_daily_sales == Decimal("140.00")

    def test_sales_of_other_days_excluded(self, reports, trading_day, session, clock, config, actor_id, today):
        product, _, _ = trading_day
        clock.advance(ONE_DAY)
        SaleService(session, clock, config).consume_for_sale(
            [SaleLineRequest(product.product_id, "2")], actor_id, "efectivo",
        )

        assert reports.financial_summary(today, today).sales.count == 2
        next_day = reports.financial_summary(date(2024, 6, 16), date(2024, 6, 16))
        assert next_day.sales.total == Decimal("80.00")
        assert next_day.cost_of_goods == Decimal("40.00")
        assert next_day.purchases == Decimal("0.00")

    def test_empty_range(self, reports):
        summary = reports.financial_summary(date(2024, 6, 1), date(2024, 6, 7))

        assert summary.days == 7
        assert summary.sales.total == Decimal("0.00")
        assert summary.average_daily_sales == Decimal("0.00")
        assert summary.cost_of_goods == Decimal("0.00")
        assert summary.gross_margin_percentage == Decimal("0.00")

    def test_end_before_start_rejected(self, reports):
        with pytest.raises(ValidationError) as exc:
            reports.financial_summary(date(2024, 6, 15), date(2024, 6, 14))
        assert exc.value.field == "end_date"

    def test_bounds_must_be_dates(self, reports):
        with pytest.raises(ValidationError) as exc:
            reports.financial_summary("2024-06-01", date(2024, 6, 14))
        assert exc.value.field == "start_date"


class TestHistories:

    def test_sales_history_carries_allocations(self, reports, trading_day, today):
        _, (cheap, dear), (first, second) = trading_day

        history = reports.sales_history(today, today)

        assert [r.sale_id for r in history] == [first.sale_id, second.sale_id]
        (line,) = history[0].lines
        costs = sorted((a.lot_id, a.quantity, a.unit_cost) for a in line.allocations)
        assert costs == sorted([
            (cheap.lot_ids[0], Decimal("4"), Decimal("12.50")),
            (dear.lot_ids[0], Decimal("2"), Decimal("20.00")),
        ])
        assert history[1].payment_method is PaymentMethod.TARJETA

    def test_purchases_history(self, reports, trading_day, today):
        _, (cheap, dear), _ = trading_day

        history = reports.purchases_history(today, today)

        assert [p.purchase_id for p in history] == [cheap.purchase_id, dear.purchase_id]
        assert history[0].supplier_name == "Lácteos del Valle"
        assert history[0].lot_ids == cheap.lot_ids
        assert history[1].total_cost == Decimal("200.00")

    def test_expenses_history_ordered_by_date(self, reports, trading_day, spend, today):
        earlier = spend("10", "efectivo", expense_date=date(2024, 6, 14))

        history = reports.expenses_history(date(2024, 6, 14), today)

        assert history[0].expense_id == earlier.expense_id
        assert [e.amount for e in history] == [Decimal("10.00"), Decimal("35.00"), Decimal("60.00")]
        assert reports.expenses_history(date(2024, 6, 16), date(2024, 6, 30)) == []

    def test_history_range_validated(self, reports):
        with pytest.raises(ValidationError):
            reports.sales_history(date(2024, 6, 2), date(2024, 6, 1))
