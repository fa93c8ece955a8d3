"""
Payment authorization held against a booking.
"""

import enum
import uuid
from typing import Optional

from sqlalchemy import Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PaymentAuthorizationStatus(str, enum.Enum):
    """Enumeration for payment authorization status."""
    AUTHORIZED = "authorized"
    VOIDED = "voided"
    FAILED = "failed"


class PaymentAuthorization(Base):
    """At most one authorization record per booking."""

    __tablename__ = "payment_authorizations"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id"),
        nullable=False,
        unique=True,
        index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[PaymentAuthorizationStatus] = mapped_column(
        Enum(
            PaymentAuthorizationStatus,
            name="payment_authorization_status",
            values_callable=lambda e: [m.value for m in e]
        ),
        nullable=False,
        index=True
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_active(self) -> bool:
        """An authorization holds funds only while authorized."""
        return self.status == PaymentAuthorizationStatus.AUTHORIZED

    def __repr__(self) -> str:
        return (
            f"<PaymentAuthorization(booking_id={self.booking_id}, provider={self.provider}, "
            f"status={self.status.value}, transaction_id={self.transaction_id})>"
        )
