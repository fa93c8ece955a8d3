"""
Booking notifications: in-app inbox records plus push delivery.
"""

import logging
from typing import List, Optional
from uuid import UUID

from ..models.booking import Booking, BookingStatus
from ..notifications.push import PushMessage, PushSender
from ..repositories.base import NotificationStore, UserDirectory
from ..utils.exceptions import ExternalServiceError, InvalidPushTokenError
from .message_templates import DEFAULT_LOCALE, message_for, title_for

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Tells the parties of a booking about its new status."""

    def __init__(
        self,
        store: NotificationStore,
        sender: PushSender,
        users: Optional[UserDirectory] = None,
        default_locale: str = DEFAULT_LOCALE,
    ):
        self.store = store
        self.sender = sender
        self.users = users
        self.default_locale = default_locale

    def message_for(
        self,
        booking: Booking,
        status: BookingStatus,
        locale: Optional[str] = None
    ) -> Optional[str]:
        return message_for(booking, status, locale or self.default_locale)

    def recipients(
        self,
        booking: Booking,
        status: BookingStatus,
        actor_id: Optional[UUID] = None
    ) -> List[UUID]:
        """Users to notify about ``status``; the actor is never told about their own cancellation."""
        if status == BookingStatus.PENDING:
            return [booking.artist_id]
        if status == BookingStatus.CANCELLED:
            return [
                user_id for user_id in (booking.customer_id, booking.artist_id)
                if user_id != actor_id
            ]
        return [booking.customer_id]

    async def dispatch(
        self,
        booking: Booking,
        status: BookingStatus,
        actor_id: Optional[UUID] = None
    ) -> int:
        """
        Notify every recipient of ``status``.

        Recipients who turned off ``booking_<status>`` notifications are
        skipped. Everyone else gets an inbox record, pushed to each of their
        active devices. Statuses without a message are skipped. Failed pushes
        are logged and do not raise.

        A recipient whose inbox record cannot be stored does not stop the
        others from being notified; the first such error is raised once every
        recipient has been tried.

        Returns:
            Number of pushes the push service accepted
        """
        notification_type = f"booking_{status.value}"
        delivered = 0
        errors: List[Exception] = []

        for user_id in self.recipients(booking, status, actor_id):
            try:
                delivered += await self._notify_user(booking, status, notification_type, user_id)
            except Exception as e:
                logger.warning(
                    f"Could not notify user {user_id} about booking {booking.id}: {e}",
                    extra={"booking_id": str(booking.id), "user_id": str(user_id), "status": status.value}
                )
                errors.append(e)

        logger.info(
            f"Booking {booking.id} notification dispatched for status {status.value}",
            extra={"booking_id": str(booking.id), "status": status.value, "pushes": delivered}
        )
        if errors:
            raise errors[0]
        return delivered

    async def _notify_user(
        self,
        booking: Booking,
        status: BookingStatus,
        notification_type: str,
        user_id: UUID
    ) -> int:
        locale = await self._locale_for(user_id)
        body = self.message_for(booking, status, locale)
        if body is None:
            logger.debug(f"No message for status {status.value}, skipping notification")
            return 0

        if not await self.store.is_enabled(user_id, notification_type):
            logger.info(
                f"User {user_id} disabled {notification_type} notifications",
                extra={"booking_id": str(booking.id), "user_id": str(user_id)}
            )
            return 0

        title = title_for(status, locale)
        data = {
            "type": "booking_status_changed",
            "bookingId": str(booking.id),
            "status": status.value,
        }

        notification = await self.store.create_notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            body=body,
            data=data,
        )

        sent = await self._push_to_user(user_id, PushMessage(title=title, body=body, data=data))
        if sent:
            await self.store.mark_push_sent(notification.id, True)
        return sent

    async def _push_to_user(self, user_id: UUID, message: PushMessage) -> int:
        tokens = await self.store.active_tokens_for_user(user_id)
        if not tokens:
            logger.debug(f"No active device tokens for user {user_id}")
            return 0

        sent = 0
        for token in tokens:
            try:
                if await self.sender.send(token, message):
                    sent += 1
            except InvalidPushTokenError:
                logger.info(f"Deactivating unregistered device token for user {user_id}")
                await self.store.deactivate_token(token)
            except ExternalServiceError as e:
                logger.warning(
                    f"Push delivery failed for user {user_id}: {e.message}",
                    extra={"user_id": str(user_id), "error_code": e.error_code.value}
                )
        return sent

    async def _locale_for(self, user_id: UUID) -> str:
        if self.users is None:
            return self.default_locale
        user = await self.users.get_user(user_id)
        if user is None or not user.locale:
            return self.default_locale
        return user.locale
