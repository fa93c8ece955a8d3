"""
AuditLog model for the immutable record of who changed what.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AuditLog(Base):
    """Insert-only audit trail entry."""

    __tablename__ = "audit_logs"

    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    # {field: {"old": ..., "new": ...}}
    changes: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity={self.entity_type}:{self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id})>"
        )
