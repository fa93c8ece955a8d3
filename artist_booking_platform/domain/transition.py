"""
Typed request to move a booking to another status.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..models.booking import BookingStatus
from ..models.user import ActorRole


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""
    id: UUID
    role: ActorRole


@dataclass(frozen=True)
class TransitionRequest:
    """A single status change attempt; lives only for one lifecycle call."""
    booking_id: UUID
    actor_id: UUID
    actor_role: ActorRole
    requested_status: BookingStatus
    reason: Optional[str] = None

    @classmethod
    def for_actor(
        cls,
        booking_id: UUID,
        actor: Actor,
        requested_status: BookingStatus,
        reason: Optional[str] = None
    ) -> "TransitionRequest":
        return cls(
            booking_id=booking_id,
            actor_id=actor.id,
            actor_role=actor.role,
            requested_status=requested_status,
            reason=reason,
        )
