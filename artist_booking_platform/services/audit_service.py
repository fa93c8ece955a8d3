"""
Audit trail of booking changes.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple
from uuid import UUID

from ..models.audit_log import AuditLog
from ..models.base import utcnow
from ..repositories.base import AuditSink

logger = logging.getLogger(__name__)

BOOKING_ENTITY = "booking"


def append_entry(log: Iterable[AuditLog], entry: AuditLog) -> Tuple[AuditLog, ...]:
    """Return ``log`` with ``entry`` at the end; existing entries are kept as-is."""
    return (*log, entry)


class AuditRecorder:
    """Builds audit entries and hands them to the sink."""

    def __init__(self, sink: AuditSink, entity_type: str = BOOKING_ENTITY):
        self.sink = sink
        self.entity_type = entity_type

    async def record(
        self,
        actor_id: Optional[UUID],
        entity_id: UUID,
        action: str,
        changes: Optional[Dict[str, Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_id=actor_id,
            entity_type=self.entity_type,
            entity_id=entity_id,
            action=action,
            changes=changes,
            extra=metadata,
            created_at=utcnow(),
        )
        stored = await self.sink.append(entry)

        logger.debug(f"Audit entry '{action}' recorded for {self.entity_type} {entity_id}")
        return stored
