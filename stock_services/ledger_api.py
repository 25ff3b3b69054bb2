"""
stock_services.ledger_api -- Command/query surface of the stock ledger.

Responsibility:
    One entry point per ledger operation.  Each call opens its own Session
    from the injected factory, wires the kernel services and selectors for
    it, and owns the transaction boundary: commit on success, rollback on
    any failure.

Architecture position:
    Services -- top of the stack.  The only layer that commits.

Invariants enforced:
    - Nothing is half-applied: every write runs in a single transaction
      that is rolled back on any exception.
    - Storage failures (``OperationalError``, ``DisconnectionError``)
      surface as ``TransientError``.  Reads retry them up to
      ``MAX_READ_RETRIES`` times; writes never retry, because the write
      may or may not have committed.
    - Kernel errors (validation, stock, conflict, authorization, not
      found) propagate unchanged.

Usage:
    from stock_kernel.db import init_engine_from_url, get_session_factory
    from stock_services import StockLedgerApi

    init_engine_from_url("postgresql://...")
    api = StockLedgerApi(get_session_factory())
    lot_id = api.create_lot(product_id, "12", "35.50", purchase_id, actor_id=user_id)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentReason,
    AdjustmentRecord,
    CashClosureResult,
    CashSessionInfo,
    DailyCashFlow,
    ExpenseCategory,
    ExpenseInfo,
    FinancialSummary,
    InventoryAlert,
    InventoryKpis,
    LotListing,
    ManagerCredentials,
    PaymentMethod,
    ProductInfo,
    ProductStockSummary,
    PurchaseInfo,
    PurchaseLineRequest,
    SaleLineRequest,
    SaleOutcome,
    SaleReceipt,
    UnitOfMeasure,
)
from stock_kernel.exceptions import StockShortageError, TransientError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.cash_flow import CashFlowAggregator
from stock_kernel.selectors.inventory_selector import InventorySelector, inventory_kpis
from stock_kernel.selectors.report_selector import ReportSelector
from stock_kernel.services.adjustment_ledger import AdjustmentLedger
from stock_kernel.services.authorizer import Authorizer, CredentialAuthorizer
from stock_kernel.services.closure_coordinator import ClosureCoordinator
from stock_kernel.services.expense_service import ExpenseService
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.product_service import ProductService
from stock_kernel.services.purchase_service import PurchaseService
from stock_kernel.services.sale_service import SaleService

logger = get_logger("api")

T = TypeVar("T")

MAX_READ_RETRIES = 3

_TRANSIENT_ERRORS = (OperationalError, DisconnectionError)


class StockLedgerApi:
    """Transactional facade over the stock kernel.

    Contract:
        Receives a Session factory plus optional Clock, LedgerConfig and an
        ``authorizer_factory`` building the manager check for a Session
        (default: ``CredentialAuthorizer``).

    Non-goals:
        - Does NOT retry writes.
        - Does NOT cache anything between calls.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        authorizer_factory: Callable[[Session], Authorizer] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()
        self._authorizer_factory = authorizer_factory or (
            lambda session: CredentialAuthorizer(session, self._clock, self._config)
        )
        register_immutability_listeners()

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _write(self, operation: str, work: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except _TRANSIENT_ERRORS as exc:
            session.rollback()
            detail = str(getattr(exc, "orig", None) or exc)
            logger.error(
                "write_transient_failure",
                extra={"operation": operation, "detail": detail},
            )
            raise TransientError(operation, detail) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _read(self, operation: str, work: Callable[[Session], T]) -> T:
        last_error: Exception | None = None
        for attempt in range(1, MAX_READ_RETRIES + 1):
            session = self._session_factory()
            try:
                return work(session)
            except _TRANSIENT_ERRORS as exc:
                last_error = exc
                logger.warning(
                    "read_transient_failure",
                    extra={"operation": operation, "attempt": attempt},
                )
            finally:
                session.close()
        raise TransientError(operation, str(last_error)) from last_error

    # ------------------------------------------------------------------
    # Lots
    # ------------------------------------------------------------------

    def create_lot(
        self,
        product_id: UUID,
        quantity: Decimal | str | int,
        price: Decimal | str | int,
        purchase_id: UUID,
        expiration_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> UUID:
        """Create a lot for an existing purchase; returns the lot id."""
        def work(session: Session) -> UUID:
            lot = LotStore(session, self._clock, self._config).create_lot(
                product_id=product_id,
                initial_quantity=quantity,
                purchase_price=price,
                purchase_id=purchase_id,
                expiration_date=expiration_date,
            )
            return lot.lot_id

        with LogContext.bind(actor_id=actor_id, product_id=product_id):
            return self._write("create_lot", work)

    def adjust_lot(
        self,
        lot_id: UUID,
        signed_quantity: Decimal | str | int,
        reason: AdjustmentReason | str,
        actor_id: UUID,
        note: str | None = None,
    ) -> None:
        def work(session: Session) -> None:
            AdjustmentLedger(session, self._clock, self._config).adjust(
                lot_id=lot_id,
                quantity_delta=signed_quantity,
                reason=reason,
                actor_id=actor_id,
                note=note,
            )

        with LogContext.bind(actor_id=actor_id):
            self._write("adjust_lot", work)

    def consume_for_sale(
        self,
        items: Sequence[SaleLineRequest],
        actor_id: UUID,
        payment_method: PaymentMethod | str = PaymentMethod.EFECTIVO,
    ) -> SaleOutcome:
        """
        Sell a cart atomically.

        Returns a SaleOutcome carrying either the sale id and receipt, or
        every InsufficientStockError of the cart.  Nothing is written when
        any line is short.
        """
        def work(session: Session) -> SaleOutcome:
            receipt = SaleService(session, self._clock, self._config).consume_for_sale(
                items, actor_id, payment_method,
            )
            return SaleOutcome(sale_id=receipt.sale_id, receipt=receipt)

        with LogContext.bind(actor_id=actor_id):
            try:
                return self._write("consume_for_sale", work)
            except StockShortageError as exc:
                return SaleOutcome(sale_id=None, shortages=exc.shortages)

    def list_lots(self, product_id: UUID, include_depleted: bool = True) -> list[LotListing]:
        return self._read(
            "list_lots",
            lambda s: InventorySelector(s, self._clock, self._config).list_lots(
                product_id, include_depleted=include_depleted,
            ),
        )

    # ------------------------------------------------------------------
    # Inventory reads
    # ------------------------------------------------------------------

    def inventory_overview(self) -> list[ProductStockSummary]:
        return self._read(
            "inventory_overview",
            lambda s: InventorySelector(s, self._clock, self._config).inventory_overview(),
        )

    def inventory_alerts(
        self,
        low_stock_threshold: Decimal | str | int | None = None,
        days_to_expiry: int | None = None,
    ) -> list[InventoryAlert]:
        return self._read(
            "inventory_alerts",
            lambda s: InventorySelector(s, self._clock, self._config).inventory_alerts(
                low_stock_threshold=low_stock_threshold, days_to_expiry=days_to_expiry,
            ),
        )

    def inventory_kpis(self, overview: Sequence[ProductStockSummary] | None = None) -> InventoryKpis:
        return inventory_kpis(overview if overview is not None else self.inventory_overview())

    def list_adjustments(self, product_id: UUID | None = None, limit: int = 50) -> list[AdjustmentRecord]:
        return self._read(
            "list_adjustments",
            lambda s: InventorySelector(s, self._clock, self._config).list_adjustments(
                product_id=product_id, limit=limit,
            ),
        )

    # ------------------------------------------------------------------
    # Catalog and purchasing
    # ------------------------------------------------------------------

    def register_product(
        self,
        name: str,
        unit_of_measure: UnitOfMeasure | str,
        sale_price: Decimal | str | int,
        actor_id: UUID,
        low_stock_threshold: Decimal | str | int | None = None,
        sold_by_weight: bool = False,
    ) -> ProductInfo:
        return self._write(
            "register_product",
            lambda s: ProductService(s, self._clock, self._config).register_product(
                name=name,
                unit_of_measure=unit_of_measure,
                sale_price=sale_price,
                actor_id=actor_id,
                low_stock_threshold=low_stock_threshold,
                sold_by_weight=sold_by_weight,
            ),
        )

    def record_purchase(
        self,
        items: Sequence[PurchaseLineRequest],
        payment_method: PaymentMethod | str,
        actor_id: UUID,
        supplier_name: str | None = None,
        notes: str | None = None,
        purchase_date: date | None = None,
    ) -> PurchaseInfo:
        """Record a purchase and one lot per line in a single transaction."""
        def work(session: Session) -> PurchaseInfo:
            return PurchaseService(session, self._clock, self._config).record_purchase(
                items=items,
                payment_method=payment_method,
                actor_id=actor_id,
                supplier_name=supplier_name,
                notes=notes,
                purchase_date=purchase_date,
            )

        with LogContext.bind(actor_id=actor_id):
            return self._write("record_purchase", work)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def record_expense(
        self,
        amount: Decimal | str | int,
        description: str,
        category: ExpenseCategory | str,
        payment_method: PaymentMethod | str,
        actor_id: UUID,
        expense_date: date | None = None,
    ) -> ExpenseInfo:
        return self._write(
            "record_expense",
            lambda s: ExpenseService(s, self._clock, self._config).record_expense(
                amount=amount,
                description=description,
                category=category,
                payment_method=payment_method,
                actor_id=actor_id,
                expense_date=expense_date,
            ),
        )

    def delete_expense(self, expense_id: UUID, actor_id: UUID) -> None:
        self._write(
            "delete_expense",
            lambda s: ExpenseService(s, self._clock, self._config).delete_expense(expense_id, actor_id),
        )

    def list_expenses(self, expense_date: date | None = None) -> list[ExpenseInfo]:
        return self._read(
            "list_expenses",
            lambda s: CashFlowAggregator(s, self._clock, self._config).list_expenses(expense_date),
        )

    # ------------------------------------------------------------------
    # Cash drawer
    # ------------------------------------------------------------------

    def daily_cash_flow(self, flow_date: date | None = None) -> DailyCashFlow:
        return self._read(
            "daily_cash_flow",
            lambda s: CashFlowAggregator(s, self._clock, self._config).daily_flow(flow_date),
        )

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
        Close today's (or ``session_date``'s) cash drawer.

        Raises:
            AuthorizationError: manager re-validation failed; nothing written.
            AlreadyClosedError: the date is already closed.
        """
        def work(session: Session) -> CashClosureResult:
            coordinator = ClosureCoordinator(
                session,
                self._authorizer_factory(session),
                self._clock,
                self._config,
            )
            return coordinator.close_cash_drawer(
                starting_cash=starting_cash,
                ending_cash=ending_cash,
                initiator_id=initiator_id,
                credentials=credentials,
                notes=notes,
                session_date=session_date,
            )

        return self._write("close_cash_drawer", work)

    def is_cash_closed(self, session_date: date | None = None) -> bool:
        return self._read(
            "is_cash_closed",
            lambda s: CashFlowAggregator(s, self._clock, self._config).is_cash_closed(session_date),
        )

    def list_cash_sessions(self, limit: int = 10) -> list[CashSessionInfo]:
        return self._read(
            "list_cash_sessions",
            lambda s: CashFlowAggregator(s, self._clock, self._config).list_cash_sessions(limit),
        )

    # ------------------------------------------------------------------
    # Period reports
    # ------------------------------------------------------------------

    def financial_summary(self, start_date: date, end_date: date) -> FinancialSummary:
        return self._read(
            "financial_summary",
            lambda s: ReportSelector(s, self._clock, self._config).financial_summary(start_date, end_date),
        )

    def sales_history(self, start_date: date, end_date: date) -> list[SaleReceipt]:
        return self._read(
            "sales_history",
            lambda s: ReportSelector(s, self._clock, self._config).sales_history(start_date, end_date),
        )

    def purchases_history(self, start_date: date, end_date: date) -> list[PurchaseInfo]:
        return self._read(
            "purchases_history",
            lambda s: ReportSelector(s, self._clock, self._config).purchases_history(start_date, end_date),
        )

    def expenses_history(self, start_date: date, end_date: date) -> list[ExpenseInfo]:
        return self._read(
            "expenses_history",
            lambda s: ReportSelector(s, self._clock, self._config).expenses_history(start_date, end_date),
        )

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    def register_staff(self, username: str, password: str, role: str) -> UUID:
        return self._write(
            "register_staff",
            lambda s: CredentialAuthorizer(s, self._clock, self._config).register_staff(
                username, password, role,
            ),
        )

