"""
Reservation lifecycle graph.

    reserved -> confirmed -> checked-in -> checked-out
    reserved -> checked-in                 (walk-in)
    any non-terminal -> cancelled

Statuses never regress; ``checked-out`` and ``cancelled`` are terminal.
"""

from lodge_reservations.errors import InvalidTransition
from lodge_reservations.models.reservations import (
    CANCELLED,
    CHECKED_IN,
    CHECKED_OUT,
    CONFIRMED,
    RESERVED,
)

TRANSITIONS: dict[str, frozenset[str]] = {
    RESERVED: frozenset({CONFIRMED, CHECKED_IN, CANCELLED}),
    CONFIRMED: frozenset({CHECKED_IN, CANCELLED}),
    CHECKED_IN: frozenset({CHECKED_OUT, CANCELLED}),
    CHECKED_OUT: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Lifecycle precedence used to pick the surfaced record among duplicates
PRECEDENCE: dict[str, int] = {
    CANCELLED: 1,
    RESERVED: 2,
    CONFIRMED: 3,
    CHECKED_IN: 4,
    CHECKED_OUT: 5,
}

# Timestamp column stamped when a reservation enters a status
TIMESTAMP_COLUMNS: dict[str, str] = {
    CHECKED_IN: "checked_in_at",
    CHECKED_OUT: "checked_out_at",
    CANCELLED: "cancelled_at",
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def require_transition(reservation_id: str, current: str, target: str) -> None:
    """
    Raises:
        InvalidTransition: If ``current -> target`` is not an edge of the graph.
    """
    if not can_transition(current, target):
        raise InvalidTransition(reservation_id, current, target)


def precedence(status: str) -> int:
    """Rank of a status; unknown statuses rank below ``cancelled``."""
    return PRECEDENCE.get(status, 0)
