"""
Booking lifecycle service.

Status changes are committed with a compare-and-set on the booking row. Payment,
notification and audit work runs only after that commit; a failing side effect
is logged and recorded for reconciliation but never undoes or fails the
transition.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from ..config import Settings, get_settings
from ..domain.booking_state import INITIAL_STATUS, RELEASED_STATUSES, validate_transition
from ..domain.status_history import StatusHistoryEntry, append_status, initial_history
from ..domain.transition import Actor, TransitionRequest
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.payment import PaymentAuthorizationStatus
from ..models.user import ActorRole
from ..repositories.base import BookingStore, SideEffectFailureStore, UserDirectory
from ..utils.exceptions import (
    AuthorizationError,
    PaymentServiceError,
    SideEffectFailure,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from .audit_service import AuditRecorder
from .notification_service import NotificationDispatcher
from .payment_service import PaymentCoordinator

logger = logging.getLogger(__name__)

SideEffect = Tuple[str, str, Callable[[], Awaitable[Any]]]


class BookingLifecycleService:
    """Creates bookings and moves them through their statuses."""

    def __init__(
        self,
        store: BookingStore,
        payments: PaymentCoordinator,
        notifications: NotificationDispatcher,
        audit: AuditRecorder,
        failures: SideEffectFailureStore,
        users: Optional[UserDirectory] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.payments = payments
        self.notifications = notifications
        self.audit = audit
        self.failures = failures
        self.users = users
        self.settings = settings or get_settings()
        self.clock = clock

    async def create(
        self,
        customer_id: UUID,
        artist_id: Optional[UUID],
        service_type: str,
        scheduled_date: Optional[datetime],
        total_amount: Decimal,
        occasion: Optional[str] = None,
        actor_id: Optional[UUID] = None,
    ) -> Booking:
        """
        Create a pending booking.

        Args:
            customer_id: Customer the booking belongs to
            artist_id: Artist asked to perform the service
            service_type: Kind of service requested
            scheduled_date: Appointment time; must be in the future
            total_amount: Price of the service
            occasion: Optional occasion description
            actor_id: User creating the booking, if not the customer

        Returns:
            The stored booking with a one-entry status history

        Raises:
            ValidationError: A field is missing or out of range
        """
        now = self.clock()
        scheduled_date = await self._validate_new_booking(
            customer_id, artist_id, service_type, scheduled_date, total_amount, now
        )

        booking = await self.store.insert_booking(
            customer_id=customer_id,
            artist_id=artist_id,
            service_type=service_type.strip(),
            occasion=occasion,
            scheduled_date=scheduled_date,
            total_amount=Decimal(total_amount),
            status=INITIAL_STATUS,
            status_history=initial_history(now),
        )

        logger.info(
            f"Booking {booking.booking_number} created for customer {customer_id} with artist {artist_id}",
            extra={"booking_id": str(booking.id), "status": booking.status.value}
        )
        log_business_event(
            "booking_created",
            {"booking_id": str(booking.id), "artist_id": str(artist_id)},
            user_id=str(customer_id)
        )

        acting_user = actor_id or customer_id
        await self._run_side_effects(booking, [
            ("notification", "booking_created",
             lambda: self.notifications.dispatch(booking, BookingStatus.PENDING, acting_user)),
            ("audit", "create",
             lambda: self.audit.record(
                 acting_user,
                 booking.id,
                 "create",
                 changes={"status": {"old": None, "new": BookingStatus.PENDING.value}},
                 metadata={"booking_number": booking.booking_number},
             )),
        ])

        return booking

    async def transition(self, request: TransitionRequest) -> Booking:
        """
        Move a booking to ``request.requested_status``.

        Requesting the status the booking already has succeeds without writing
        anything or running side effects.

        Raises:
            BookingNotFoundError: The booking does not exist
            AuthorizationError: The actor is not a party to the booking
            ForbiddenTransitionError: The actor's role may not take this edge
            InvalidTransitionError: The edge is not part of the state machine
            ConflictError: Another request changed the booking first
        """
        booking = await self.store.load_booking(request.booking_id)
        self._check_ownership(booking, request.actor_id, request.actor_role)

        previous_status = booking.status
        target = request.requested_status

        if not validate_transition(previous_status, target, request.actor_role):
            logger.debug(f"Booking {booking.id} already {target.value}; nothing to do")
            return booking

        new_history = append_status(booking.status_history, target, self.clock())
        updated = await self.store.cas_update_status(booking.id, previous_status, target, new_history)

        logger.info(
            f"Booking {updated.booking_number} moved {previous_status.value} -> {target.value} "
            f"by {request.actor_role.value} {request.actor_id}",
            extra={
                "booking_id": str(updated.id),
                "from_status": previous_status.value,
                "to_status": target.value,
                "actor_role": request.actor_role.value,
            }
        )
        log_business_event(
            "booking_status_changed",
            {"booking_id": str(updated.id), "from_status": previous_status.value, "to_status": target.value},
            user_id=str(request.actor_id)
        )

        await self._run_side_effects(updated, self._transition_effects(updated, previous_status, request))
        return updated

    async def accept(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self.transition(TransitionRequest.for_actor(booking_id, actor, BookingStatus.CONFIRMED))

    async def decline(self, booking_id: UUID, actor: Actor, reason: Optional[str] = None) -> Booking:
        return await self.transition(
            TransitionRequest.for_actor(booking_id, actor, BookingStatus.DECLINED, reason)
        )

    async def cancel(self, booking_id: UUID, actor: Actor, reason: Optional[str] = None) -> Booking:
        return await self.transition(
            TransitionRequest.for_actor(booking_id, actor, BookingStatus.CANCELLED, reason)
        )

    async def start(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self.transition(TransitionRequest.for_actor(booking_id, actor, BookingStatus.IN_PROGRESS))

    async def complete(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self.transition(TransitionRequest.for_actor(booking_id, actor, BookingStatus.COMPLETED))

    async def get(self, booking_id: UUID, actor: Optional[Actor] = None) -> Booking:
        """Load a booking; when ``actor`` is given it must be a party to it or an admin."""
        booking = await self.store.load_booking(booking_id)
        if actor is not None:
            self._check_ownership(booking, actor.id, actor.role)
        return booking

    async def history(self, booking_id: UUID, actor: Optional[Actor] = None) -> List[StatusHistoryEntry]:
        booking = await self.get(booking_id, actor)
        return list(booking.status_history)

    def _transition_effects(
        self,
        booking: Booking,
        previous_status: BookingStatus,
        request: TransitionRequest
    ) -> List[SideEffect]:
        target = request.requested_status
        effects: List[SideEffect] = []

        if target == BookingStatus.CONFIRMED:
            effects.append(("payment", "authorize", lambda: self._authorize_payment(booking)))
        elif target in (BookingStatus.CANCELLED, BookingStatus.DECLINED):
            effects.append(("payment", "void", lambda: self.payments.void(booking)))

        effects.append((
            "notification",
            f"booking_{target.value}",
            lambda: self.notifications.dispatch(booking, target, request.actor_id),
        ))

        metadata: Dict[str, Any] = {"actor_role": request.actor_role.value}
        if request.reason:
            metadata["reason"] = request.reason
        effects.append((
            "audit",
            "status_change",
            lambda: self.audit.record(
                request.actor_id,
                booking.id,
                "status_change",
                changes={"status": {"old": previous_status.value, "new": target.value}},
                metadata=metadata,
            ),
        ))
        return effects

    async def _authorize_payment(self, booking: Booking):
        authorization = await self.payments.authorize(booking)
        if authorization.status == PaymentAuthorizationStatus.FAILED:
            raise PaymentServiceError(
                authorization.failure_reason or "Authorization declined",
                details={"booking_id": str(booking.id)}
            )

        # A cancel or decline may have committed while the provider was working;
        # its void found nothing to release.
        current = await self.store.load_booking(booking.id)
        if current.status in RELEASED_STATUSES:
            logger.warning(
                f"Booking {booking.id} became {current.status.value} during authorization; voiding",
                extra={"booking_id": str(booking.id), "transaction_id": authorization.transaction_id}
            )
            return await self.payments.void(current)
        return authorization

    async def _run_side_effects(self, booking: Booking, effects: List[SideEffect]) -> List[bool]:
        """Run effects concurrently; returns whether each one succeeded."""
        return await asyncio.gather(*(
            self._run_side_effect(booking, effect, operation, action)
            for effect, operation, action in effects
        ))

    async def _run_side_effect(
        self,
        booking: Booking,
        effect: str,
        operation: str,
        action: Callable[[], Awaitable[Any]]
    ) -> bool:
        timeout = self.settings.side_effect_timeout_seconds
        try:
            await asyncio.wait_for(action(), timeout=timeout)
            return True
        except asyncio.TimeoutError as e:
            failure = SideEffectFailure(effect, operation, str(booking.id), e)
            error = f"timed out after {timeout}s"
        except Exception as e:
            failure = SideEffectFailure(effect, operation, str(booking.id), e)
            error = f"{type(e).__name__}: {e}"

        logger.warning(
            failure.message,
            extra={"booking_id": str(booking.id), "effect": effect, "operation": operation, "error": error}
        )

        try:
            await self.failures.record(booking.id, effect, operation, error)
        except Exception:
            logger.exception(
                f"Could not record failed {effect} side effect for booking {booking.id}",
                extra={"booking_id": str(booking.id), "effect": effect, "operation": operation}
            )
        return False

    def _check_ownership(self, booking: Booking, actor_id: UUID, role: ActorRole) -> None:
        if role == ActorRole.ADMIN:
            return
        if role == ActorRole.CUSTOMER and booking.customer_id == actor_id:
            return
        if role == ActorRole.ARTIST and booking.artist_id == actor_id:
            return
        raise AuthorizationError(
            f"{role.value.capitalize()} {actor_id} is not a party to booking {booking.id}",
            details={"booking_id": str(booking.id)}
        )

    async def _validate_new_booking(
        self,
        customer_id: UUID,
        artist_id: Optional[UUID],
        service_type: str,
        scheduled_date: Optional[datetime],
        total_amount: Decimal,
        now: datetime,
    ) -> datetime:
        field_errors: Dict[str, List[str]] = {}

        if artist_id is None:
            field_errors.setdefault("artist_id", []).append("An artist is required")
        elif artist_id == customer_id:
            field_errors.setdefault("artist_id", []).append("Customers cannot book themselves")

        if not service_type or not service_type.strip():
            field_errors.setdefault("service_type", []).append("Service type is required")

        if total_amount is None or Decimal(total_amount) < 0:
            field_errors.setdefault("total_amount", []).append("Amount must not be negative")

        if scheduled_date is None:
            field_errors.setdefault("scheduled_date", []).append("A scheduled date is required")
        else:
            if scheduled_date.tzinfo is None:
                scheduled_date = scheduled_date.replace(tzinfo=timezone.utc)
            if scheduled_date <= now:
                field_errors.setdefault("scheduled_date", []).append("Scheduled date must be in the future")

        if artist_id is not None and "artist_id" not in field_errors and self.users is not None:
            artist = await self.users.get_user(artist_id)
            if artist is None or artist.role != ActorRole.ARTIST or not artist.is_active:
                field_errors.setdefault("artist_id", []).append("Artist not found")

        if field_errors:
            raise ValidationError("Invalid booking request", field_errors=field_errors)

        return scheduled_date
