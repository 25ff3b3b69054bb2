"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, the
    query side of the services/selectors split.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: frozen dataclasses, never ORM rows.
    - Derived figures (total stock, cash flow) are recomputed from persisted
      rows on every call; nothing is cached between calls.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.config import LedgerConfig
from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller, performs read-only queries and
        returns DTOs.  ``today`` is derived from the injected Clock in the
        configured ledger timezone.
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
        return self._clock.today(self._config.tzinfo)
