"""
SQLAlchemy-backed payment authorization storage.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import session_scope
from ..models.payment import PaymentAuthorization
from .base import PaymentAuthorizationStore


class PaymentAuthorizationRepository(PaymentAuthorizationStore):
    """Stores the one authorization row per booking."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_for_booking(self, booking_id: UUID) -> Optional[PaymentAuthorization]:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(PaymentAuthorization).where(PaymentAuthorization.booking_id == booking_id)
            )
            return result.scalar_one_or_none()

    async def save(self, authorization: PaymentAuthorization) -> PaymentAuthorization:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(PaymentAuthorization).where(
                    PaymentAuthorization.booking_id == authorization.booking_id
                )
            )
            existing = result.scalar_one_or_none()

            if existing is None:
                session.add(authorization)
                await session.flush()
                return authorization

            existing.provider = authorization.provider
            existing.status = authorization.status
            existing.transaction_id = authorization.transaction_id
            existing.failure_reason = authorization.failure_reason
            await session.flush()
            return existing
