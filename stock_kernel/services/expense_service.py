"""
Service layer for operational expenses.

Expenses are cash-relevant only when paid ``efectivo``.  An expense whose
date already has a closed cash drawer cannot be deleted: the closure's
reconciliation was computed with it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import ExpenseCategory, ExpenseInfo, PaymentMethod
from stock_kernel.domain.values import require_text, to_enum, to_positive_money
from stock_kernel.exceptions import DayClosedError, ExpenseNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.cash_session import CashDrawerSession
from stock_kernel.models.expense import Expense
from stock_kernel.selectors.cash_flow import expense_to_dto
from stock_kernel.services.base import BaseService

logger = get_logger("services.expense")


class ExpenseService(BaseService[Expense]):

    def record_expense(
        self,
        amount: Decimal | str | int,
        description: str,
        category: ExpenseCategory | str,
        payment_method: PaymentMethod | str,
        actor_id: UUID,
        expense_date: date | None = None,
    ) -> ExpenseInfo:
        """
        Record an operational expense.

        Raises:
            InvalidAmountError: amount <= 0 or malformed.
            ValidationError: empty description, unknown category or method.
        """
        value = to_positive_money(amount, "amount")
        text = require_text(description, "description", 500)
        expense_category = to_enum(ExpenseCategory, category, "category")
        method = to_enum(PaymentMethod, payment_method, "payment_method")

        expense = Expense(
            amount=value,
            description=text,
            category=expense_category.value,
            payment_method=method.value,
            expense_date=expense_date or self._today(),
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(expense)
        self.session.flush()

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "amount": str(value),
                "category": expense_category.value,
                "payment_method": method.value,
                "expense_date": expense.expense_date.isoformat(),
            },
        )
        return expense_to_dto(expense)

    def delete_expense(self, expense_id: UUID, actor_id: UUID) -> None:
        """
        Delete an expense whose day is still open.

        Raises:
            ExpenseNotFoundError: unknown expense.
            DayClosedError: the expense's date has a closed cash drawer.
        """
        expense = self.session.get(Expense, expense_id)
        if expense is None:
            raise ExpenseNotFoundError(str(expense_id))

        closed = self.session.execute(
            select(CashDrawerSession.id)
            .where(CashDrawerSession.session_date == expense.expense_date)
            .where(CashDrawerSession.end_time.is_not(None))
        ).scalar_one_or_none()
        if closed is not None:
            logger.warning(
                "expense_delete_rejected_day_closed",
                extra={
                    "expense_id": str(expense_id),
                    "expense_date": expense.expense_date.isoformat(),
                },
            )
            raise DayClosedError(
                session_date=expense.expense_date.isoformat(),
                entity_type="Expense",
                entity_id=str(expense_id),
            )

        self.session.delete(expense)
        self.session.flush()

        logger.info(
            "expense_deleted",
            extra={
                "expense_id": str(expense_id),
                "deleted_by": str(actor_id),
            },
        )
