"""Business logic services for the Artist Booking Platform."""

from .audit_service import AuditRecorder
from .booking_service import BookingLifecycleService
from .notification_service import NotificationDispatcher
from .payment_service import PaymentCoordinator

__all__ = ["AuditRecorder", "BookingLifecycleService", "NotificationDispatcher", "PaymentCoordinator"]
