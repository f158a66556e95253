"""Registration lifecycle as an explicit transition table."""

import typing as t

from registrations.exceptions import InvalidState
from registrations.models import Registration

Status = Registration.Status

TRANSITIONS: t.Final[dict[str, frozenset[str]]] = {
    Status.WAITLISTED: frozenset({Status.PROMOTION_PENDING, Status.CANCELLED}),
    Status.PROMOTION_PENDING: frozenset({Status.REGISTERED, Status.CANCELLED}),
    Status.REGISTERED: frozenset({Status.CANCELLED, Status.ATTENDED, Status.NO_SHOW}),
    Status.ATTENDED: frozenset(),
    Status.NO_SHOW: frozenset(),
    Status.CANCELLED: frozenset(),
}

TERMINAL_STATES: t.Final[frozenset[str]] = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Registrations created by the engine start in one of these.
INITIAL_STATES: t.Final[frozenset[str]] = frozenset({Status.REGISTERED, Status.WAITLISTED})

# Statuses that occupy a seat on the capacity ledger.
SEAT_HOLDING_STATES: t.Final[frozenset[str]] = frozenset({Status.REGISTERED, Status.PROMOTION_PENDING})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def assert_transition(current: str, target: str) -> None:
    """Raise InvalidState unless `current -> target` is a legal lifecycle step."""
    if not can_transition(current, target):
        raise InvalidState(f"Cannot move a registration from {current} to {target}.")
