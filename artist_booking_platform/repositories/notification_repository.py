"""
SQLAlchemy-backed notification inbox, preferences and device tokens.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import session_scope
from ..models.device_token import DeviceToken
from ..models.notification import Notification
from ..models.notification_preference import NotificationPreference
from .base import NotificationStore


class NotificationRepository(NotificationStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def is_enabled(self, user_id: UUID, notification_type: str) -> bool:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(NotificationPreference).where(NotificationPreference.user_id == user_id)
            )
            preference = result.scalar_one_or_none()
            return preference is None or preference.allows(notification_type)

    async def create_notification(
        self,
        user_id: UUID,
        type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        async with session_scope(self.session_factory) as session:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                body=body,
                data=data,
                push_sent=False,
            )
            session.add(notification)
            await session.flush()
            return notification

    async def mark_push_sent(self, notification_id: UUID, push_sent: bool) -> None:
        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(push_sent=push_sent)
            )

    async def active_tokens_for_user(self, user_id: UUID) -> List[str]:
        async with session_scope(self.session_factory) as session:
            result = await session.execute(
                select(DeviceToken.token).where(
                    and_(DeviceToken.user_id == user_id, DeviceToken.is_active.is_(True))
                )
            )
            return list(result.scalars().all())

    async def deactivate_token(self, token: str) -> None:
        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(DeviceToken)
                .where(DeviceToken.token == token)
                .values(is_active=False)
            )
