"""
Module: stock_kernel.selectors.cash_flow
Responsibility: CashFlowAggregator -- summarizes one calendar date's sales,
    purchases and expenses into drawer in/out/net figures, plus read access
    to cash drawer sessions and expenses.
Architecture position: Kernel > Selectors.  Read-only.

Arithmetic (all money-rounded):
    sales.{cash,card,transfer}  completed sales of the date by payment method
    sales.total                 cash + card + transfer
    expenses.purchases          cash-paid purchase totals of the date
    expenses.operations         cash-paid operational expenses of the date
    expenses.total              purchases + operations
    cash_flow.in                sales.cash
    cash_flow.out               expenses.purchases + expenses.operations
    cash_flow.net               in - out

Non-cash purchases and expenses are reported in ``non_cash_*`` for
visibility and never enter the reconciliation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from stock_kernel.domain.dtos import (
    CashFlowTotals,
    CashSessionInfo,
    ClosureStatus,
    DailyCashFlow,
    DifferenceType,
    ExpenseCategory,
    ExpenseInfo,
    ExpensesBreakdown,
    PaymentMethod,
    SalesBreakdown,
    SaleStatus,
)
from stock_kernel.domain.values import round_money, sum_money
from stock_kernel.exceptions import SessionNotFoundError
from stock_kernel.models.cash_session import CashDrawerSession
from stock_kernel.models.expense import Expense
from stock_kernel.models.purchase import Purchase
from stock_kernel.models.sale import Sale
from stock_kernel.selectors.base import BaseSelector

DEFAULT_SESSION_LIMIT = 10


def expense_to_dto(expense: Expense) -> ExpenseInfo:
    return ExpenseInfo(
        expense_id=expense.id,
        amount=round_money(expense.amount),
        description=expense.description,
        category=ExpenseCategory(expense.category),
        payment_method=PaymentMethod(expense.payment_method),
        expense_date=expense.expense_date,
        actor_id=expense.created_by_id,
        created_at=expense.created_at,
    )


def session_to_dto(row: CashDrawerSession) -> CashSessionInfo:
    return CashSessionInfo(
        session_id=row.id,
        session_date=row.session_date,
        user_id=row.user_id,
        approved_by_id=row.approved_by_id,
        start_time=row.start_time,
        end_time=row.end_time,
        starting_cash=round_money(row.starting_cash),
        ending_cash=round_money(row.ending_cash),
        calculated_sales=round_money(row.calculated_sales),
        cash_in=round_money(row.cash_in),
        cash_out=round_money(row.cash_out),
        cash_net=round_money(row.cash_net),
        expected_ending=round_money(row.expected_ending),
        difference=round_money(row.difference),
        difference_type=DifferenceType(row.difference_type),
        notes=row.notes,
    )


class CashFlowAggregator(BaseSelector[Sale]):
    """Daily cash-flow breakdown and cash-session queries."""

    def compute_flow(self, flow_date: date) -> tuple[SalesBreakdown, ExpensesBreakdown, CashFlowTotals]:
        """The sales / expenses / cash_flow figures for one date."""
        by_method: dict[str, list[Decimal]] = {m.value: [] for m in PaymentMethod}
        sales = self.session.execute(
            select(Sale.payment_method, Sale.total_amount)
            .where(Sale.sale_date == flow_date)
            .where(Sale.status == SaleStatus.COMPLETED.value)
        ).all()
        for method, amount in sales:
            by_method[method].append(amount)

        cash = sum_money(by_method[PaymentMethod.EFECTIVO.value])
        card = sum_money(by_method[PaymentMethod.TARJETA.value])
        transfer = sum_money(by_method[PaymentMethod.TRANSFERENCIA.value])
        sales_breakdown = SalesBreakdown(
            total=round_money(cash + card + transfer),
            count=len(sales),
            cash=cash,
            card=card,
            transfer=transfer,
        )

        purchases = self.session.execute(
            select(Purchase.payment_method, Purchase.total_cost)
            .where(Purchase.purchase_date == flow_date)
        ).all()
        expenses = self.session.execute(
            select(Expense.payment_method, Expense.amount)
            .where(Expense.expense_date == flow_date)
        ).all()

        cash_method = PaymentMethod.EFECTIVO.value
        purchases_cash = sum_money(a for m, a in purchases if m == cash_method)
        operations_cash = sum_money(a for m, a in expenses if m == cash_method)
        expenses_breakdown = ExpensesBreakdown(
            purchases=purchases_cash,
            operations=operations_cash,
            total=round_money(purchases_cash + operations_cash),
            non_cash_purchases=sum_money(a for m, a in purchases if m != cash_method),
            non_cash_operations=sum_money(a for m, a in expenses if m != cash_method),
        )

        cash_in = sales_breakdown.cash
        cash_out = expenses_breakdown.total
        totals = CashFlowTotals(
            cash_in=cash_in,
            cash_out=cash_out,
            net=round_money(cash_in - cash_out),
        )
        return sales_breakdown, expenses_breakdown, totals

    def daily_flow(self, flow_date: date | None = None) -> DailyCashFlow:
        """
        Cash-flow breakdown for ``flow_date`` (default: today in the ledger
        timezone), including the closure block when the date is closed.
        """
        target = flow_date or self._today()
        sales, expenses, totals = self.compute_flow(target)

        closure = ClosureStatus(is_closed=False)
        row = self._session_row(target)
        if row is not None and row.is_closed:
            closure = ClosureStatus(
                is_closed=True,
                starting_cash=round_money(row.starting_cash),
                ending_cash=round_money(row.ending_cash),
                difference=round_money(row.difference),
                difference_type=DifferenceType(row.difference_type),
            )

        return DailyCashFlow(
            flow_date=target,
            sales=sales,
            expenses=expenses,
            cash_flow=totals,
            closure=closure,
        )

    def _session_row(self, session_date: date) -> CashDrawerSession | None:
        return self.session.execute(
            select(CashDrawerSession).where(CashDrawerSession.session_date == session_date)
        ).scalar_one_or_none()

    def find_session(self, session_date: date) -> CashSessionInfo | None:
        row = self._session_row(session_date)
        return session_to_dto(row) if row is not None else None

    def get_session(self, session_date: date) -> CashSessionInfo:
        """
        Raises:
            SessionNotFoundError: no session for the date.
        """
        found = self.find_session(session_date)
        if found is None:
            raise SessionNotFoundError(session_date.isoformat())
        return found

    def is_cash_closed(self, session_date: date | None = None) -> bool:
        row = self._session_row(session_date or self._today())
        return row is not None and row.is_closed

    def list_cash_sessions(self, limit: int = DEFAULT_SESSION_LIMIT) -> list[CashSessionInfo]:
        """Most recent sessions first."""
        rows = self.session.execute(
            select(CashDrawerSession)
            .order_by(CashDrawerSession.session_date.desc())
            .limit(limit)
        ).scalars()
        return [session_to_dto(row) for row in rows]

    def list_expenses(self, expense_date: date | None = None) -> list[ExpenseInfo]:
        """Expenses of one date, oldest first."""
        target = expense_date or self._today()
        rows = self.session.execute(
            select(Expense)
            .where(Expense.expense_date == target)
            .order_by(Expense.created_at, Expense.id)
        ).scalars()
        return [expense_to_dto(row) for row in rows]
