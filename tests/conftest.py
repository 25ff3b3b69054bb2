"""
Pytest fixtures for the stock ledger test suite.

Provides:
- An in-memory SQLite database per test (tables created from the ORM models)
- A session for service/selector tests and a session factory for API tests
- A DeterministicClock fixed at midday in the ledger timezone
- Factories for products, purchases and lots
- A fake Authorizer for closure tests
- Structured-log capture

Environment Variables:
- DATABASE_URL: only read by tests marked ``postgres``.

Service tests use ``session`` and API tests use ``api``; the two share the
single in-memory connection, so one test never uses both.
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import stock_kernel.models  # noqa: F401  registers every table on Base.metadata
from stock_kernel.config import LedgerConfig
from stock_kernel.db.base import Base
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.dtos import (
    AuthorizedApprover,
    ManagerCredentials,
    PaymentMethod,
)
from stock_kernel.exceptions import AuthorizationError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.models.purchase import Purchase
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.product_service import ProductService
from stock_kernel.services.purchase_service import PurchaseService
from stock_services.ledger_api import StockLedgerApi

# 12:00 in America/Mexico_City (UTC-6)
TEST_NOW = datetime(2024, 6, 15, 18, 0, 0, tzinfo=UTC)
TEST_TODAY = date(2024, 6, 15)

TEST_ACTOR_ID = uuid4()
MANAGER_ID = uuid4()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, allocator):
            allocator.consume(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_consumed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()


@pytest.fixture
def engine():
    """Fresh in-memory database for one test."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Time, config, actors
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def today() -> date:
    return TEST_TODAY


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig()


@pytest.fixture
def actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Authorizer
# =============================================================================


class FakeAuthorizer:
    """Approves one fixed manager unless told to deny.

    ``on_authorize`` runs inside ``authorize`` before the decision, so a test
    can interleave work at the point where a real manager check would block.
    """

    def __init__(self, approver_id: UUID = MANAGER_ID, deny_reason: str | None = None):
        self.approver_id = approver_id
        self.deny_reason = deny_reason
        self.calls: list[tuple[ManagerCredentials, UUID]] = []
        self.on_authorize = None

    def authorize(self, credentials: ManagerCredentials, initiator_id: UUID) -> AuthorizedApprover:
        self.calls.append((credentials, initiator_id))
        if self.on_authorize is not None:
            self.on_authorize()
        if self.deny_reason is not None:
            raise AuthorizationError(self.deny_reason, approver=credentials.username)
        return AuthorizedApprover(
            approver_id=self.approver_id,
            username=credentials.username,
            role="encargado",
        )


@pytest.fixture
def fake_authorizer() -> FakeAuthorizer:
    return FakeAuthorizer()


@pytest.fixture
def manager_credentials() -> ManagerCredentials:
    return ManagerCredentials(username="encargado1", password="secreto123")


# =============================================================================
# Factories (session-bound)
# =============================================================================


@pytest.fixture
def make_product(session, clock, config, actor_id):
    """Register a product; names are made unique automatically."""
    counter = {"n": 0}

    def _make(
        name: str | None = None,
        unit_of_measure: str = "kg",
        sale_price: str = "100.00",
        low_stock_threshold: str | None = None,
    ):
        counter["n"] += 1
        return ProductService(session, clock, config).register_product(
            name=name or f"Producto {counter['n']}",
            unit_of_measure=unit_of_measure,
            sale_price=sale_price,
            actor_id=actor_id,
            low_stock_threshold=low_stock_threshold,
        )

    return _make


@pytest.fixture
def purchase(session, clock, actor_id) -> Purchase:
    """A bare non-cash purchase header that lots can hang off."""
    row = Purchase(
        purchase_date=TEST_TODAY,
        payment_method=PaymentMethod.TRANSFERENCIA.value,
        total_cost=Decimal("0"),
        supplier_name="Lácteos del Valle",
        created_at=clock.now(),
        created_by_id=actor_id,
    )
    session.add(row)
    session.flush()
    return row


@pytest.fixture
def make_lot(session, clock, config, purchase):
    """Create a lot; the clock advances one second afterwards so that
    consecutive lots have strictly increasing ``created_at``."""

    def _make(
        product_id: UUID,
        quantity: str = "10",
        price: str = "50.00",
        expiration_date: date | None = None,
    ):
        lot = LotStore(session, clock, config).create_lot(
            product_id=product_id,
            initial_quantity=quantity,
            purchase_price=price,
            purchase_id=purchase.id,
            expiration_date=expiration_date,
        )
        clock.advance(1)
        return lot

    return _make


@pytest.fixture
def purchase_service(session, clock, config) -> PurchaseService:
    return PurchaseService(session, clock, config)


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api(session_factory, clock, config, fake_authorizer) -> StockLedgerApi:
    return StockLedgerApi(
        session_factory,
        clock=clock,
        config=config,
        authorizer_factory=lambda session: fake_authorizer,
    )
