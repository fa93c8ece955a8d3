"""Shared fixtures and in-memory collaborators for the lifecycle tests.

Everything runs under AnyIO pinned to asyncio (``@pytest.mark.anyio``). The
in-memory stores honour the same contracts as the SQLAlchemy repositories,
including compare-and-set on booking status.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from artist_booking_platform.config import Settings
from artist_booking_platform.domain.transition import Actor
from artist_booking_platform.models.audit_log import AuditLog
from artist_booking_platform.models.booking import Booking, BookingStatus
from artist_booking_platform.models.notification import Notification
from artist_booking_platform.models.payment import PaymentAuthorization
from artist_booking_platform.models.side_effect_failure import SideEffectFailureRecord
from artist_booking_platform.models.user import ActorRole, User
from artist_booking_platform.notifications.push import PushMessage, PushSender
from artist_booking_platform.payments.base import AuthorizationResult, PaymentProvider, VoidResult
from artist_booking_platform.repositories.base import (
    AuditSink,
    BookingStore,
    NotificationStore,
    PaymentAuthorizationStore,
    SideEffectFailureStore,
    UserDirectory,
)
from artist_booking_platform.services.audit_service import AuditRecorder
from artist_booking_platform.services.booking_service import BookingLifecycleService
from artist_booking_platform.services.notification_service import NotificationDispatcher
from artist_booking_platform.services.payment_service import PaymentCoordinator
from artist_booking_platform.utils.exceptions import (
    BookingNotFoundError,
    ConflictError,
    InvalidPushTokenError,
    PushServiceError,
)

FIXED_NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


def _copy_booking(booking: Booking) -> Booking:
    return Booking(
        id=booking.id,
        booking_number=booking.booking_number,
        customer_id=booking.customer_id,
        artist_id=booking.artist_id,
        service_type=booking.service_type,
        occasion=booking.occasion,
        scheduled_date=booking.scheduled_date,
        total_amount=booking.total_amount,
        status=booking.status,
        status_history=[dict(entry) for entry in booking.status_history],
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


class InMemoryBookingStore(BookingStore):
    """Bookings held in a dict; callers always get copies, like separate sessions would."""

    def __init__(self) -> None:
        self.rows: Dict[uuid.UUID, Booking] = {}
        self.load_barrier: Optional[asyncio.Barrier] = None
        self.barrier_loads = 0
        self.cas_calls = 0

    async def load_booking(self, booking_id):
        if booking_id not in self.rows:
            raise BookingNotFoundError(str(booking_id))
        snapshot = _copy_booking(self.rows[booking_id])
        # only the racing loads meet at the barrier
        if self.load_barrier is not None and self.barrier_loads < self.load_barrier.parties:
            self.barrier_loads += 1
            await self.load_barrier.wait()
        return snapshot

    async def insert_booking(self, customer_id, artist_id, service_type, occasion,
                             scheduled_date, total_amount, status, status_history):
        booking = Booking(
            id=uuid.uuid4(),
            booking_number=f"BK-202610180900-{len(self.rows):04d}",
            customer_id=customer_id,
            artist_id=artist_id,
            service_type=service_type,
            occasion=occasion,
            scheduled_date=scheduled_date,
            total_amount=total_amount,
            status=status,
            status_history=list(status_history),
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        self.rows[booking.id] = booking
        return _copy_booking(booking)

    async def cas_update_status(self, booking_id, expected_status, new_status, new_history):
        self.cas_calls += 1
        stored = self.rows.get(booking_id)
        if stored is None:
            raise BookingNotFoundError(str(booking_id))
        if stored.status != expected_status:
            raise ConflictError(str(booking_id), expected_status.value)
        stored.status = new_status
        stored.status_history = list(new_history)
        return _copy_booking(stored)


class InMemoryUserDirectory(UserDirectory):

    def __init__(self) -> None:
        self.users: Dict[uuid.UUID, User] = {}

    def add(self, role: ActorRole, locale: str = "ko") -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            full_name=role.value.title(),
            role=role,
            locale=locale,
            is_active=True,
        )
        self.users[user.id] = user
        return user

    async def get_user(self, user_id):
        return self.users.get(user_id)


class InMemoryPaymentStore(PaymentAuthorizationStore):

    def __init__(self) -> None:
        self.rows: Dict[uuid.UUID, PaymentAuthorization] = {}
        self.saves = 0

    async def get_for_booking(self, booking_id):
        return self.rows.get(booking_id)

    async def save(self, authorization):
        self.saves += 1
        self.rows[authorization.booking_id] = authorization
        return authorization


class FakePaymentProvider(PaymentProvider):
    """Scriptable provider; records every call."""

    def __init__(self) -> None:
        self.authorize_calls: List[uuid.UUID] = []
        self.void_calls: List[str] = []
        self.decline_authorization = False
        self.authorize_error: Optional[Exception] = None
        self.void_error: Optional[Exception] = None
        self.delay = 0.0

    @property
    def name(self) -> str:
        return "fake_pay"

    async def authorize(self, booking):
        self.authorize_calls.append(booking.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.authorize_error is not None:
            raise self.authorize_error
        if self.decline_authorization:
            return AuthorizationResult(success=False, provider=self.name, error_message="card declined")
        return AuthorizationResult(success=True, provider=self.name, transaction_id=f"FP-{len(self.authorize_calls)}")

    async def void(self, booking, transaction_id):
        self.void_calls.append(transaction_id)
        if self.void_error is not None:
            raise self.void_error
        return VoidResult(success=True, transaction_id=transaction_id)


class InMemoryNotificationStore(NotificationStore):

    def __init__(self) -> None:
        self.notifications: List[Notification] = []
        self.tokens: Dict[uuid.UUID, List[str]] = {}
        self.deactivated: List[str] = []
        self.disabled: set = set()
        self.fail_create = False
        self.fail_for: set = set()

    async def is_enabled(self, user_id, notification_type):
        return (user_id, notification_type) not in self.disabled

    async def create_notification(self, user_id, type, title, body, data=None):
        if self.fail_create or user_id in self.fail_for:
            raise RuntimeError("inbox unavailable")
        notification = Notification(
            id=uuid.uuid4(), user_id=user_id, type=type, title=title, body=body, data=data, push_sent=False
        )
        self.notifications.append(notification)
        return notification

    async def mark_push_sent(self, notification_id, push_sent):
        for notification in self.notifications:
            if notification.id == notification_id:
                notification.push_sent = push_sent

    async def active_tokens_for_user(self, user_id):
        return [t for t in self.tokens.get(user_id, []) if t not in self.deactivated]

    async def deactivate_token(self, token):
        self.deactivated.append(token)


class RecordingPushSender(PushSender):
    """Accepts every push except tokens listed as invalid or failing."""

    def __init__(self) -> None:
        self.sent: List[tuple] = []
        self.invalid_tokens: set = set()
        self.failing_tokens: set = set()

    async def send(self, token: str, message: PushMessage) -> bool:
        if token in self.invalid_tokens:
            raise InvalidPushTokenError(token)
        if token in self.failing_tokens:
            raise PushServiceError("FCM unavailable")
        self.sent.append((token, message))
        return True


class InMemoryAuditSink(AuditSink):

    def __init__(self) -> None:
        self.entries: List[AuditLog] = []
        self.fail = False

    async def append(self, entry):
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.entries.append(entry)
        return entry


class InMemoryFailureStore(SideEffectFailureStore):

    def __init__(self) -> None:
        self.records: List[SideEffectFailureRecord] = []

    async def record(self, booking_id, effect, operation, error):
        record = SideEffectFailureRecord(
            id=uuid.uuid4(), booking_id=booking_id, effect=effect, operation=operation, error=error
        )
        self.records.append(record)
        return record

    async def list_unresolved(self, effect, limit=100):
        return [r for r in self.records if r.effect == effect and r.resolved_at is None][:limit]

    async def mark_resolved(self, failure_id):
        for record in self.records:
            if record.id == failure_id:
                record.resolved_at = FIXED_NOW

    def for_effect(self, effect: str) -> List[SideEffectFailureRecord]:
        return [r for r in self.records if r.effect == effect]


@dataclass
class LifecycleHarness:
    """A lifecycle service wired to in-memory collaborators."""
    service: BookingLifecycleService
    bookings: InMemoryBookingStore
    users: InMemoryUserDirectory
    payment_store: InMemoryPaymentStore
    provider: FakePaymentProvider
    notification_store: InMemoryNotificationStore
    push: RecordingPushSender
    audit_sink: InMemoryAuditSink
    failures: InMemoryFailureStore
    customer: Actor
    artist: Actor
    admin: Actor
    defaults: Dict[str, Any] = field(default_factory=dict)

    async def create_booking(self, **overrides) -> Booking:
        params = {
            "customer_id": self.customer.id,
            "artist_id": self.artist.id,
            "service_type": "bridal_makeup",
            "scheduled_date": FIXED_NOW + timedelta(days=7),
            "total_amount": Decimal("150000"),
            "occasion": "wedding",
        }
        params.update(overrides)
        return await self.service.create(**params)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(side_effect_timeout_seconds=0.5, default_locale="ko")


@pytest.fixture
def harness(test_settings: Settings) -> LifecycleHarness:
    bookings = InMemoryBookingStore()
    users = InMemoryUserDirectory()
    payment_store = InMemoryPaymentStore()
    provider = FakePaymentProvider()
    notification_store = InMemoryNotificationStore()
    push = RecordingPushSender()
    audit_sink = InMemoryAuditSink()
    failures = InMemoryFailureStore()

    customer = users.add(ActorRole.CUSTOMER)
    artist = users.add(ActorRole.ARTIST)
    admin = users.add(ActorRole.ADMIN)
    notification_store.tokens[customer.id] = ["customer-device"]
    notification_store.tokens[artist.id] = ["artist-device"]

    service = BookingLifecycleService(
        store=bookings,
        payments=PaymentCoordinator(provider, payment_store),
        notifications=NotificationDispatcher(notification_store, push, users=users),
        audit=AuditRecorder(audit_sink),
        failures=failures,
        users=users,
        settings=test_settings,
        clock=lambda: FIXED_NOW,
    )

    return LifecycleHarness(
        service=service,
        bookings=bookings,
        users=users,
        payment_store=payment_store,
        provider=provider,
        notification_store=notification_store,
        push=push,
        audit_sink=audit_sink,
        failures=failures,
        customer=Actor(customer.id, ActorRole.CUSTOMER),
        artist=Actor(artist.id, ActorRole.ARTIST),
        admin=Actor(admin.id, ActorRole.ADMIN),
    )


def make_booking(status: BookingStatus = BookingStatus.PENDING, **overrides) -> Booking:
    """Detached booking for unit tests that do not go through a store."""
    params = dict(
        id=uuid.uuid4(),
        booking_number="BK-202610180900-AB12",
        customer_id=uuid.uuid4(),
        artist_id=uuid.uuid4(),
        service_type="hair_styling",
        occasion=None,
        scheduled_date=datetime(2026, 10, 18, 14, 30, tzinfo=timezone.utc),
        total_amount=Decimal("80000"),
        status=status,
        status_history=[{"status": status.value, "timestamp": FIXED_NOW.isoformat()}],
    )
    params.update(overrides)
    return Booking(**params)

