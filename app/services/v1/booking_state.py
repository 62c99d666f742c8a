# app/services/v1/booking_state.py
"""
Booking lifecycle.

pending is the only initial state and is never reachable through an update.
cancelled, completed and no_show are terminal.
"""

from app.db.models import BookingStatus
from common import ConflictError

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

ACTIVE_STATES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATES


def assert_valid_transition(current: BookingStatus, requested: BookingStatus) -> None:
    """
    Raises:
        ConflictError: INVALID_TRANSITION when `requested` is not reachable
            from `current` in one step (self-transitions included).
    """
    if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ConflictError(
            f'Cannot transition booking from "{current.value}" to "{requested.value}"',
            code="INVALID_TRANSITION",
        )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "ACTIVE_STATES",
    "is_terminal",
    "assert_valid_transition",
]
