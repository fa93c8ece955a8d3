"""
Booking state machine.

Each edge of the table names the actor roles allowed to take it. Admins may
additionally cancel from any non-terminal status.
"""

from typing import Dict, FrozenSet, Tuple

from ..models.booking import BookingStatus
from ..models.user import ActorRole
from ..utils.exceptions import ForbiddenTransitionError, InvalidTransitionError

INITIAL_STATUS = BookingStatus.PENDING

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.DECLINED,
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
})

# Statuses whose payment must be held
HELD_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
})

# Statuses whose payment must be released
RELEASED_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.CANCELLED,
    BookingStatus.DECLINED,
})

BOOKING_TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], FrozenSet[ActorRole]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({ActorRole.ARTIST}),
    (BookingStatus.PENDING, BookingStatus.DECLINED): frozenset({ActorRole.ARTIST}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({ActorRole.CUSTOMER}),
    (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS): frozenset({ActorRole.ARTIST, ActorRole.ADMIN}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({ActorRole.ARTIST, ActorRole.ADMIN}),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED): frozenset({ActorRole.ARTIST}),
}


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_roles(current: BookingStatus, target: BookingStatus) -> FrozenSet[ActorRole]:
    """Roles that may move a booking from ``current`` to ``target``; empty if no such edge."""
    roles = BOOKING_TRANSITIONS.get((current, target), frozenset())
    if target == BookingStatus.CANCELLED and not is_terminal(current):
        roles = roles | {ActorRole.ADMIN}
    return roles


def validate_transition(current: BookingStatus, target: BookingStatus, role: ActorRole) -> bool:
    """
    Check a requested status change against the state table.

    Args:
        current: Status the booking is in now
        target: Requested status
        role: Role of the acting user

    Returns:
        False when ``target`` equals ``current`` (nothing to apply),
        True when the transition must be applied.

    Raises:
        InvalidTransitionError: The edge does not exist
        ForbiddenTransitionError: The edge exists but not for this role
    """
    if current == target:
        return False

    roles = allowed_roles(current, target)
    if not roles:
        raise InvalidTransitionError(current.value, target.value)

    if role not in roles:
        raise ForbiddenTransitionError(current.value, target.value, role.value)

    return True
