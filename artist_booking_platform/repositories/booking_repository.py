"""
SQLAlchemy-backed booking and user storage.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import session_scope
from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..utils.booking_number import generate_booking_number
from ..utils.exceptions import BookingNotFoundError, ConflictError
from .base import BookingStore, UserDirectory

logger = logging.getLogger(__name__)


class BookingRepository(BookingStore):
    """Booking persistence; every method runs in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], booking_number_prefix: str = "BK"):
        self.session_factory = session_factory
        self.booking_number_prefix = booking_number_prefix

    async def load_booking(self, booking_id: UUID) -> Booking:
        async with session_scope(self.session_factory) as session:
            booking = await session.get(Booking, booking_id)
            if booking is None:
                raise BookingNotFoundError(str(booking_id))
            return booking

    async def insert_booking(
        self,
        customer_id: UUID,
        artist_id: UUID,
        service_type: str,
        occasion: Optional[str],
        scheduled_date: datetime,
        total_amount: Decimal,
        status: BookingStatus,
        status_history: List[Dict[str, Any]],
    ) -> Booking:
        async with session_scope(self.session_factory) as session:
            booking_number = await self._unique_booking_number(session)
            now = utcnow()

            booking = Booking(
                id=uuid.uuid4(),
                booking_number=booking_number,
                customer_id=customer_id,
                artist_id=artist_id,
                service_type=service_type,
                occasion=occasion,
                scheduled_date=scheduled_date,
                total_amount=total_amount,
                status=status,
                status_history=list(status_history),
                created_at=now,
                updated_at=now,
            )
            session.add(booking)
            await session.flush()

            logger.debug(f"Inserted booking {booking.id} ({booking_number})")
            return booking

    async def cas_update_status(
        self,
        booking_id: UUID,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        new_history: List[Dict[str, Any]],
    ) -> Booking:
        async with session_scope(self.session_factory) as session:
            # Statuses never repeat along a path, so an unchanged status also
            # means an unchanged history.
            result = await session.execute(
                update(Booking)
                .where(
                    and_(
                        Booking.id == booking_id,
                        Booking.status == expected_status
                    )
                )
                .values(
                    status=new_status,
                    status_history=list(new_history),
                    updated_at=utcnow()
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                exists = await session.scalar(select(Booking.id).where(Booking.id == booking_id))
                if exists is None:
                    raise BookingNotFoundError(str(booking_id))
                raise ConflictError(str(booking_id), expected_status.value)

            refreshed = await session.execute(
                select(Booking)
                .where(Booking.id == booking_id)
                .execution_options(populate_existing=True)
            )
            return refreshed.scalar_one()

    async def _unique_booking_number(self, session: AsyncSession) -> str:
        while True:
            candidate = generate_booking_number(self.booking_number_prefix)
            taken = await session.scalar(
                select(Booking.id).where(Booking.booking_number == candidate)
            )
            if taken is None:
                return candidate


class UserRepository(UserDirectory):
    """Read-only user lookups."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_user(self, user_id: UUID) -> Optional[User]:
        async with session_scope(self.session_factory) as session:
            return await session.get(User, user_id)
