"""
Concurrent sales and closures against a real PostgreSQL database.

SQLite serializes writers, so these races only mean something under
PostgreSQL row locks.  Set DATABASE_URL to a disposable database:

    DATABASE_URL=postgresql://localhost/stock_ledger_test pytest -m postgres

Expected behavior:
- Concurrent sales of one product never oversell: exactly as many carts
  succeed as the stock allows and the lots end at zero, never below.
- Concurrent closures of one date: exactly one succeeds, the rest see
  AlreadyClosedError carrying the winner's session.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest

from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.dtos import PurchaseLineRequest, SaleLineRequest
from stock_kernel.exceptions import AlreadyClosedError
from stock_services.ledger_api import StockLedgerApi

pytestmark = pytest.mark.postgres

DATABASE_URL = os.environ.get("DATABASE_URL", "")

if not DATABASE_URL.startswith("postgresql"):
    pytest.skip("requires DATABASE_URL pointing at PostgreSQL", allow_module_level=True)

WORKERS = 8


@pytest.fixture
def pg_api(fake_authorizer, config):
    init_engine_from_url(DATABASE_URL, pool_size=WORKERS + 2)
    drop_tables()
    create_tables()
    yield StockLedgerApi(
        get_session_factory(),
        config=config,
        authorizer_factory=lambda session: fake_authorizer,
    )
    drop_tables()
    reset_engine()


def test_concurrent_sales_never_oversell(pg_api, actor_id):
    product = pg_api.register_product("Queso Cotija", "kg", "120.00", actor_id)
    pg_api.record_purchase(
        [
            PurchaseLineRequest(product.product_id, "6", "70.00"),
            PurchaseLineRequest(product.product_id, "4", "72.00"),
        ],
        "transferencia", actor_id,
    )
    barrier = Barrier(WORKERS)

    def sell():
        barrier.wait()
        return pg_api.consume_for_sale([SaleLineRequest(product.product_id, "2")], uuid4())

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(lambda _: sell(), range(WORKERS)))

    succeeded = [o for o in outcomes if o.success]
    short = [o for o in outcomes if not o.success]
    assert len(succeeded) == 5
    assert len(short) == WORKERS - 5

    lots = pg_api.list_lots(product.product_id)
    assert sum(lot.stock_quantity for lot in lots) == Decimal("0")
    assert all(lot.stock_quantity >= 0 for lot in lots)
    assert pg_api.daily_cash_flow().sales.count == 5


def test_concurrent_closures_single_winner(pg_api, actor_id, manager_credentials):
    barrier = Barrier(WORKERS)

    def close(ending):
        barrier.wait()
        try:
            return pg_api.close_cash_drawer("100", ending, actor_id, manager_credentials)
        except AlreadyClosedError as exc:
            return exc

    endings = [str(100 + i) for i in range(WORKERS)]
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(close, endings))

    winners = [r for r in results if not isinstance(r, AlreadyClosedError)]
    losers = [r for r in results if isinstance(r, AlreadyClosedError)]
    assert len(winners) == 1
    assert len(losers) == WORKERS - 1

    (winner,) = winners
    assert all(e.existing_session.session_id == winner.session_id for e in losers)
    assert [s.session_id for s in pg_api.list_cash_sessions()] == [winner.session_id]
