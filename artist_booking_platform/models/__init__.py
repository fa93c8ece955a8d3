"""
Database models for the Artist Booking Platform.
"""

from .base import Base
from .user import User, ActorRole
from .booking import Booking, BookingStatus
from .payment import PaymentAuthorization, PaymentAuthorizationStatus
from .device_token import DeviceToken
from .notification import Notification
from .notification_preference import NotificationPreference
from .audit_log import AuditLog
from .side_effect_failure import SideEffectFailureRecord

__all__ = [
    "Base",
    "User",
    "ActorRole",
    "Booking",
    "BookingStatus",
    "PaymentAuthorization",
    "PaymentAuthorizationStatus",
    "DeviceToken",
    "Notification",
    "NotificationPreference",
    "AuditLog",
    "SideEffectFailureRecord",
]
