"""
Per-user switches for booking notifications.
"""

import uuid

from sqlalchemy import Boolean, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

# Notification type -> preference column
NOTIFICATION_TYPE_COLUMNS = {
    "booking_pending": "booking_created",
    "booking_confirmed": "booking_confirmed",
    "booking_declined": "booking_declined",
    "booking_cancelled": "booking_cancelled",
    "booking_in_progress": "booking_in_progress",
    "booking_completed": "booking_completed",
}


class NotificationPreference(Base):
    """Which booking notifications a user wants; a missing row means all enabled."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    booking_created: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    booking_confirmed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    booking_declined: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    booking_cancelled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    booking_in_progress: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    booking_completed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def allows(self, notification_type: str) -> bool:
        """Unknown types are always allowed; unset columns count as enabled."""
        column = NOTIFICATION_TYPE_COLUMNS.get(notification_type)
        if column is None:
            return True
        return getattr(self, column) is not False
