"""
Module: stock_kernel.selectors.report_selector
Responsibility: ReportSelector -- period reports over an inclusive date
    range: the financial summary and the sales, purchase and expense
    histories behind it.
Architecture position: Kernel > Selectors.  Read-only.

Arithmetic (all money-rounded):
    days                 (end - start) + 1
    sales.*              completed sales in range, split by payment method
    average_daily_sales  sales.total / days
    purchases            purchase totals in range, any payment method
    expenses             operational expenses in range, any payment method
    cost_of_goods        sum(allocation.quantity * allocation.unit_cost)
                         over the completed sales in range
    gross_profit         sales.total - cost_of_goods
    net_profit           gross_profit - expenses
    gross_margin_pct     gross_profit / sales.total * 100, 0 without sales
    cash_result          sales.total - purchases - expenses
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from stock_kernel.domain.dtos import (
    AllocationLine,
    ExpenseInfo,
    FinancialSummary,
    PaymentMethod,
    PurchaseInfo,
    SaleLineInfo,
    SaleReceipt,
    SalesBreakdown,
    SaleStatus,
)
from stock_kernel.domain.values import ZERO_MONEY, round_money, sum_money
from stock_kernel.exceptions import ValidationError
from stock_kernel.models.expense import Expense
from stock_kernel.models.purchase import Purchase
from stock_kernel.models.sale import Sale, SaleAllocation, SaleItem
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.cash_flow import expense_to_dto

_PERCENT = Decimal("0.01")


def sale_to_dto(sale: Sale) -> SaleReceipt:
    return SaleReceipt(
        sale_id=sale.id,
        sale_date=sale.sale_date,
        payment_method=PaymentMethod(sale.payment_method),
        total_amount=round_money(sale.total_amount),
        actor_id=sale.created_by_id,
        created_at=sale.created_at,
        lines=tuple(
            SaleLineInfo(
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_sale=item.price_at_sale,
                line_total=round_money(item.line_total),
                allocations=tuple(
                    AllocationLine(
                        lot_id=allocation.lot_id,
                        quantity=allocation.quantity,
                        unit_cost=allocation.unit_cost,
                    )
                    for allocation in item.allocations
                ),
            )
            for item in sale.items
        ),
    )


def purchase_to_dto(purchase: Purchase, lot_ids: tuple[UUID, ...] | None = None) -> PurchaseInfo:
    if lot_ids is None:
        lot_ids = tuple(lot.id for lot in purchase.lots)
    return PurchaseInfo(
        purchase_id=purchase.id,
        purchase_date=purchase.purchase_date,
        payment_method=PaymentMethod(purchase.payment_method),
        total_cost=round_money(purchase.total_cost),
        actor_id=purchase.created_by_id,
        supplier_name=purchase.supplier_name,
        notes=purchase.notes,
        lot_ids=lot_ids,
    )


def _check_range(start_date: date, end_date: date) -> int:
    """Validate an inclusive range and return its length in days."""
    for name, value in (("start_date", start_date), ("end_date", end_date)):
        if not isinstance(value, date):
            raise ValidationError(name, repr(value), "must be a date")
    if end_date < start_date:
        raise ValidationError("end_date", end_date.isoformat(), f"is before start_date {start_date.isoformat()}")
    return (end_date - start_date).days + 1


class ReportSelector(BaseSelector[Sale]):
    """Financial summary and history listings over a date range."""

    def financial_summary(self, start_date: date, end_date: date) -> FinancialSummary:
        """
        Profit and loss for ``start_date`` through ``end_date`` inclusive.

        Raises:
            ValidationError: a bound is not a date, or end precedes start.
        """
        days = _check_range(start_date, end_date)

        by_method: dict[str, list[Decimal]] = {m.value: [] for m in PaymentMethod}
        sales = self.session.execute(
            select(Sale.payment_method, Sale.total_amount)
            .where(Sale.sale_date.between(start_date, end_date))
            .where(Sale.status == SaleStatus.COMPLETED.value)
        ).all()
        for method, amount in sales:
            by_method[method].append(amount)
        cash = sum_money(by_method[PaymentMethod.EFECTIVO.value])
        card = sum_money(by_method[PaymentMethod.TARJETA.value])
        transfer = sum_money(by_method[PaymentMethod.TRANSFERENCIA.value])
        breakdown = SalesBreakdown(
            total=round_money(cash + card + transfer),
            count=len(sales),
            cash=cash,
            card=card,
            transfer=transfer,
        )

        purchases = sum_money(self.session.execute(
            select(Purchase.total_cost).where(Purchase.purchase_date.between(start_date, end_date))
        ).scalars())
        expenses = sum_money(self.session.execute(
            select(Expense.amount).where(Expense.expense_date.between(start_date, end_date))
        ).scalars())
        cost_of_goods = sum_money(
            quantity * unit_cost
            for quantity, unit_cost in self.session.execute(
                select(SaleAllocation.quantity, SaleAllocation.unit_cost)
                .join(SaleItem, SaleAllocation.sale_item_id == SaleItem.id)
                .join(Sale, SaleItem.sale_id == Sale.id)
                .where(Sale.sale_date.between(start_date, end_date))
                .where(Sale.status == SaleStatus.COMPLETED.value)
            ).all()
        )

        gross_profit = round_money(breakdown.total - cost_of_goods)
        margin = ZERO_MONEY
        if breakdown.total > 0:
            margin = (gross_profit * 100 / breakdown.total).quantize(_PERCENT, rounding=ROUND_HALF_UP)

        return FinancialSummary(
            start_date=start_date,
            end_date=end_date,
            days=days,
            sales=breakdown,
            average_daily_sales=round_money(breakdown.total / days),
            purchases=purchases,
            expenses=expenses,
            cost_of_goods=cost_of_goods,
            gross_profit=gross_profit,
            net_profit=round_money(gross_profit - expenses),
            gross_margin_percentage=margin,
            cash_result=round_money(breakdown.total - purchases - expenses),
        )

    def sales_history(self, start_date: date, end_date: date) -> list[SaleReceipt]:
        """Completed sales in range with their lines and lot allocations, oldest first."""
        _check_range(start_date, end_date)
        rows = self.session.execute(
            select(Sale)
            .where(Sale.sale_date.between(start_date, end_date))
            .where(Sale.status == SaleStatus.COMPLETED.value)
            .options(selectinload(Sale.items).selectinload(SaleItem.allocations))
            .order_by(Sale.sale_date, Sale.created_at, Sale.id)
            .execution_options(populate_existing=True)
        ).scalars()
        return [sale_to_dto(row) for row in rows]

    def purchases_history(self, start_date: date, end_date: date) -> list[PurchaseInfo]:
        _check_range(start_date, end_date)
        rows = self.session.execute(
            select(Purchase)
            .where(Purchase.purchase_date.between(start_date, end_date))
            .options(selectinload(Purchase.lots))
            .order_by(Purchase.purchase_date, Purchase.created_at, Purchase.id)
            .execution_options(populate_existing=True)
        ).scalars()
        return [purchase_to_dto(row) for row in rows]

    def expenses_history(self, start_date: date, end_date: date) -> list[ExpenseInfo]:
        _check_range(start_date, end_date)
        rows = self.session.execute(
            select(Expense)
            .where(Expense.expense_date.between(start_date, end_date))
            .order_by(Expense.expense_date, Expense.created_at, Expense.id)
        ).scalars()
        return [expense_to_dto(row) for row in rows]
