"""
Record of a post-commit side effect that failed and awaits reconciliation.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class SideEffectFailureRecord(Base):
    """Operational record of a swallowed payment/notification/audit error."""

    __tablename__ = "side_effect_failures"

    booking_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    effect: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    operation: Mapped[str] = mapped_column(String(64), nullable=False)
    error: Mapped[str] = mapped_column(Text, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None
