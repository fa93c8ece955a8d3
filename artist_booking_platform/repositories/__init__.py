"""Storage interfaces and their SQLAlchemy implementations."""

from .base import (
    AuditSink,
    BookingStore,
    NotificationStore,
    PaymentAuthorizationStore,
    SideEffectFailureStore,
    UserDirectory,
)
from .booking_repository import BookingRepository, UserRepository
from .payment_repository import PaymentAuthorizationRepository
from .notification_repository import NotificationRepository
from .audit_repository import AuditLogRepository, SideEffectFailureRepository

__all__ = [
    "AuditSink",
    "BookingStore",
    "NotificationStore",
    "PaymentAuthorizationStore",
    "SideEffectFailureStore",
    "UserDirectory",
    "BookingRepository",
    "UserRepository",
    "PaymentAuthorizationRepository",
    "NotificationRepository",
    "AuditLogRepository",
    "SideEffectFailureRepository",
]
