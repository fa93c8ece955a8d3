"""
Storage interfaces consumed by the booking lifecycle.

Implementations must keep each call atomic: a method either applies all of
its writes or none of them.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from ..models.audit_log import AuditLog
from ..models.booking import Booking, BookingStatus
from ..models.notification import Notification
from ..models.payment import PaymentAuthorization
from ..models.side_effect_failure import SideEffectFailureRecord
from ..models.user import User


class BookingStore(ABC):
    """Persistence for bookings."""

    @abstractmethod
    async def load_booking(self, booking_id: UUID) -> Booking:
        """Return the booking or raise ``BookingNotFoundError``."""

    @abstractmethod
    async def insert_booking(
        self,
        customer_id: UUID,
        artist_id: UUID,
        service_type: str,
        occasion: Optional[str],
        scheduled_date: datetime,
        total_amount: Decimal,
        status: BookingStatus,
        status_history: List[Dict[str, Any]],
    ) -> Booking:
        """Insert a new booking and return it with its id and booking number."""

    @abstractmethod
    async def cas_update_status(
        self,
        booking_id: UUID,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        new_history: List[Dict[str, Any]],
    ) -> Booking:
        """
        Set status and history together, only if the stored status still equals
        ``expected_status``.

        Raises:
            ConflictError: The stored status changed since it was read
            BookingNotFoundError: The booking does not exist
        """


class UserDirectory(ABC):
    """Read access to users."""

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        ...


class PaymentAuthorizationStore(ABC):
    """Persistence for the single authorization record of a booking."""

    @abstractmethod
    async def get_for_booking(self, booking_id: UUID) -> Optional[PaymentAuthorization]:
        ...

    @abstractmethod
    async def save(self, authorization: PaymentAuthorization) -> PaymentAuthorization:
        """Insert or replace the booking's authorization record."""


class NotificationStore(ABC):
    """In-app inbox, notification preferences and device token lookups."""

    @abstractmethod
    async def is_enabled(self, user_id: UUID, notification_type: str) -> bool:
        """Whether the user wants notifications of ``notification_type``."""

    @abstractmethod
    async def create_notification(
        self,
        user_id: UUID,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        ...

    @abstractmethod
    async def mark_push_sent(self, notification_id: UUID, push_sent: bool) -> None:
        ...

    @abstractmethod
    async def active_tokens_for_user(self, user_id: UUID) -> List[str]:
        ...

    @abstractmethod
    async def deactivate_token(self, token: str) -> None:
        ...


class AuditSink(ABC):
    """Append-only destination for audit entries."""

    @abstractmethod
    async def append(self, entry: AuditLog) -> AuditLog:
        ...


class SideEffectFailureStore(ABC):
    """Operational log of side effects awaiting reconciliation."""

    @abstractmethod
    async def record(
        self,
        booking_id: UUID,
        effect: str,
        operation: str,
        error: str,
    ) -> SideEffectFailureRecord:
        ...

    @abstractmethod
    async def list_unresolved(self, effect: str, limit: int = 100) -> List[SideEffectFailureRecord]:
        ...

    @abstractmethod
    async def mark_resolved(self, failure_id: UUID) -> None:
        ...
