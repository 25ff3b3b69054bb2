"""
ClosureCoordinator -- daily cash drawer closure.

Responsibility:
    Closes the drawer for one calendar date exactly once.  The coordinator
    re-validates a manager through the injected ``Authorizer``, computes the
    day's cash flow, reconciles the declared drawer cash against it and
    persists the session together with the full breakdown.

Architecture position:
    Kernel > Services -- imperative shell.  Reads cash flow through the
    CashFlowAggregator selector and drives the pure ``ClosureAttempt`` state
    machine from ``domain/closure.py``.

Invariants enforced:
    - At most one closed session per date: an existing session is looked up
      under FOR UPDATE first, and the UNIQUE(session_date) constraint
      catches the race where two requests both saw no row.
    - A rejected authorization persists nothing.
    - A closed session is never modified (db/immutability.py).

Failure modes:
    - InvalidAmountError: starting or ending cash negative or malformed.
    - AuthorizationError: manager re-validation failed.
    - AlreadyClosedError: the date already has a session; the committed
      session is carried on the exception unchanged.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.closure import ClosureAttempt
from stock_kernel.domain.dtos import (
    CashClosureResult,
    ClosureStatus,
    DailyCashFlow,
    ManagerCredentials,
)
from stock_kernel.domain.reconciliation import reconcile
from stock_kernel.domain.values import to_non_negative_money
from stock_kernel.exceptions import AlreadyClosedError, AuthorizationError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.cash_session import CashDrawerSession
from stock_kernel.selectors.cash_flow import CashFlowAggregator, session_to_dto
from stock_kernel.services.authorizer import Authorizer
from stock_kernel.services.base import BaseService

logger = get_logger("services.closure")

MAX_NOTES_LENGTH = 1000


class ClosureCoordinator(BaseService[CashDrawerSession]):
    """Performs the once-per-day cash drawer closure."""

    def __init__(
        self,
        session: Session,
        authorizer: Authorizer,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session, clock, config)
        self._authorizer = authorizer
        self._cash_flow = CashFlowAggregator(session, self._clock, self._config)

    def close_cash_drawer(
        self,
        starting_cash: Decimal | str | int,
        ending_cash: Decimal | str | int,
        initiator_id: UUID,
        credentials: ManagerCredentials,
        notes: str | None = None,
        session_date: date | None = None,
    ) -> CashClosureResult:
        """
        Close the cash drawer for ``session_date`` (default: today in the
        ledger timezone).

        Returns:
            CashClosureResult with the reconciliation and the breakdown the
            closure was computed from.

        Raises:
            InvalidAmountError, AuthorizationError, AlreadyClosedError.
        """
        target = session_date or self._today()
        to_non_negative_money(starting_cash, "starting_cash")
        to_non_negative_money(ending_cash, "ending_cash")
        clean_notes = (notes or "").strip()[:MAX_NOTES_LENGTH] or None

        with LogContext.bind(session_date=target.isoformat(), actor_id=str(initiator_id)):
            existing = self.session.execute(
                self._lock(
                    select(CashDrawerSession).where(CashDrawerSession.session_date == target)
                )
            ).scalar_one_or_none()
            if existing is not None:
                self._raise_already_closed(existing)

            attempt = ClosureAttempt(session_date=target)
            attempt.begin_authorization()
            try:
                approver = self._authorizer.authorize(credentials, initiator_id)
            except AuthorizationError:
                attempt.reject()
                logger.warning(
                    "cash_closure_rejected",
                    extra={"closure_state": attempt.state.value},
                )
                raise

            sales, expenses, totals = self._cash_flow.compute_flow(target)
            result = reconcile(starting_cash, ending_cash, totals, self._config.exact_match_epsilon)

            now = self._clock.now()
            row = CashDrawerSession(
                session_date=target,
                user_id=initiator_id,
                approved_by_id=approver.approver_id,
                start_time=now,
                end_time=now,
                starting_cash=result.starting_cash,
                ending_cash=result.ending_cash,
                calculated_sales=sales.total,
                sales_count=sales.count,
                sales_cash=sales.cash,
                sales_card=sales.card,
                sales_transfer=sales.transfer,
                purchases_cash=expenses.purchases,
                operations_cash=expenses.operations,
                non_cash_purchases=expenses.non_cash_purchases,
                non_cash_operations=expenses.non_cash_operations,
                cash_in=totals.cash_in,
                cash_out=totals.cash_out,
                cash_net=totals.net,
                expected_ending=result.expected_ending,
                difference=result.difference,
                difference_type=result.difference_type.value,
                notes=clean_notes,
            )
            self.session.add(row)
            try:
                self.session.flush()
            except IntegrityError:
                # Another request closed the same date after our lookup
                self.session.rollback()
                logger.warning("concurrent_cash_closure_conflict")
                winner = self.session.execute(
                    select(CashDrawerSession).where(CashDrawerSession.session_date == target)
                ).scalar_one()
                self._raise_already_closed(winner)

            attempt.close()

            logger.info(
                "cash_drawer_closed",
                extra={
                    "session_id": str(row.id),
                    "approved_by": str(approver.approver_id),
                    "expected_ending": str(result.expected_ending),
                    "ending_cash": str(result.ending_cash),
                    "difference": str(result.difference),
                    "difference_type": result.difference_type.value,
                },
            )

            breakdown = DailyCashFlow(
                flow_date=target,
                sales=sales,
                expenses=expenses,
                cash_flow=totals,
                closure=ClosureStatus(
                    is_closed=True,
                    starting_cash=result.starting_cash,
                    ending_cash=result.ending_cash,
                    difference=result.difference,
                    difference_type=result.difference_type,
                ),
            )
            return CashClosureResult(
                success=True,
                session_id=row.id,
                session_date=target,
                difference_type=result.difference_type,
                difference_amount=result.difference,
                breakdown=breakdown,
                session=session_to_dto(row),
                message=_closure_message(result.difference_type.value, result.difference),
            )

    @staticmethod
    def _raise_already_closed(row: CashDrawerSession) -> None:
        logger.warning(
            "cash_closure_already_closed",
            extra={"session_id": str(row.id)},
        )
        raise AlreadyClosedError(
            session_date=row.session_date.isoformat(),
            session_id=str(row.id),
            existing_session=session_to_dto(row),
        )


def _closure_message(difference_type: str, difference: Decimal) -> str:
    if difference_type == "exact":
        return "Cash drawer closed: counted cash matches expected"
    if difference_type == "surplus":
        return f"Cash drawer closed with a surplus of {difference}"
    return f"Cash drawer closed with a deficit of {abs(difference)}"
