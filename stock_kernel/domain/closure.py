"""
Cash drawer closure lifecycle.

Responsibility
--------------
Pure state machine for one closure attempt of one calendar date.

    OPEN --authorize--> AUTHORIZING --commit--> CLOSED
      ^                      |
      +---- reject ----------+

CLOSED is terminal.  A rejected authorization returns the attempt to OPEN;
nothing has been persisted at that point.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The
ClosureCoordinator drives a ``ClosureAttempt`` while it holds the
per-date lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class ClosureState(str, Enum):
    """Closure lifecycle states."""

    OPEN = "open"
    AUTHORIZING = "authorizing"
    CLOSED = "closed"


CLOSURE_TRANSITIONS: dict[ClosureState, frozenset[ClosureState]] = {
    ClosureState.OPEN: frozenset({ClosureState.AUTHORIZING}),
    ClosureState.AUTHORIZING: frozenset({ClosureState.OPEN, ClosureState.CLOSED}),
    ClosureState.CLOSED: frozenset(),
}

TERMINAL_CLOSURE_STATES: frozenset[ClosureState] = frozenset({ClosureState.CLOSED})


class InvalidClosureTransitionError(Exception):
    """Programming error: a transition not in CLOSURE_TRANSITIONS."""

    def __init__(self, from_state: ClosureState, to_state: ClosureState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid closure transition {from_state.value} -> {to_state.value}"
        )


def can_transition(from_state: ClosureState, to_state: ClosureState) -> bool:
    return to_state in CLOSURE_TRANSITIONS[from_state]


@dataclass
class ClosureAttempt:
    """Mutable tracker for a single closure request."""

    session_date: date
    state: ClosureState = ClosureState.OPEN
    history: list[ClosureState] = field(default_factory=list)

    def transition(self, to_state: ClosureState) -> None:
        if not can_transition(self.state, to_state):
            raise InvalidClosureTransitionError(self.state, to_state)
        self.history.append(self.state)
        self.state = to_state

    def begin_authorization(self) -> None:
        self.transition(ClosureState.AUTHORIZING)

    def reject(self) -> None:
        self.transition(ClosureState.OPEN)

    def close(self) -> None:
        self.transition(ClosureState.CLOSED)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_CLOSURE_STATES
