"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  A service receives the caller's SQLAlchemy ``Session`` (the
    unit of work) and uses ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller (StockLedgerApi or the test
      harness) owns commit/rollback, so a sale's depletion, its items and
      its allocations land or vanish together.

Failure modes:
    - A subclass calling ``session.commit()`` would break the all-or-nothing
      guarantee of consumption and closure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a ``Session`` plus the injected Clock and LedgerConfig.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only methods; those live in
          ``stock_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()

    def _today(self):
        """Current calendar date in the ledger timezone."""
        return self._clock.today(self._config.tzinfo)

    def _lock(self, stmt):
        """Apply ``FOR UPDATE`` and refresh already-loaded rows.

        The SQLite dialect renders FOR UPDATE as a no-op.
        """
        return stmt.with_for_update().execution_options(populate_existing=True)
