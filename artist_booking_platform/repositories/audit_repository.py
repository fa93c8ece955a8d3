"""
SQLAlchemy-backed audit log and side-effect failure log.
"""

from typing import List
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import session_scope
from ..models.audit_log import AuditLog
from ..models.base import utcnow
from ..models.side_effect_failure import SideEffectFailureRecord
from .base import AuditSink, SideEffectFailureStore


class AuditLogRepository(AuditSink):
    """Insert-only; entries are never updated or deleted."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, entry: AuditLog) -> AuditLog:
        async with session_scope(self.session_factory) as session:
            session.add(entry)
            await session.flush()
            return entry

    async def list_for_entity(self, entity_type: str, entity_id: UUID) -> List[AuditLog]:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(AuditLog)
                .where(and_(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id))
                .order_by(AuditLog.created_at.asc())
            )
            return list(result.scalars().all())


class SideEffectFailureRepository(SideEffectFailureStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        booking_id: UUID,
        effect: str,
        operation: str,
        error: str,
    ) -> SideEffectFailureRecord:
        async with session_scope(self.session_factory) as session:
            failure = SideEffectFailureRecord(
                booking_id=booking_id,
                effect=effect,
                operation=operation,
                error=error,
            )
            session.add(failure)
            await session.flush()
            return failure

    async def list_unresolved(self, effect: str, limit: int = 100) -> List[SideEffectFailureRecord]:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(SideEffectFailureRecord)
                .where(
                    and_(
                        SideEffectFailureRecord.effect == effect,
                        SideEffectFailureRecord.resolved_at.is_(None)
                    )
                )
                .order_by(SideEffectFailureRecord.created_at.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def mark_resolved(self, failure_id: UUID) -> None:
        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(SideEffectFailureRecord)
                .where(SideEffectFailureRecord.id == failure_id)
                .values(resolved_at=utcnow())
            )
