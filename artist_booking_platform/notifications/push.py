"""
Push notification senders.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from ..utils.circuit_breaker import CircuitBreaker
from ..utils.exceptions import InvalidPushTokenError, PushServiceError

logger = logging.getLogger(__name__)

# Errors meaning the token will never be deliverable again
_INVALID_TOKEN_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
    firebase_exceptions.InvalidArgumentError,
)


@dataclass
class PushMessage:
    """A single push payload."""
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    sound: str = "default"


class PushSender(ABC):
    """Delivers a push message to one device token."""

    @abstractmethod
    async def send(self, token: str, message: PushMessage) -> bool:
        """
        Deliver ``message`` to ``token``.

        Returns:
            True when the push service accepted the message

        Raises:
            InvalidPushTokenError: The token is unregistered and should be deactivated
            ExternalServiceError: The push service could not be reached
        """


class LoggingPushSender(PushSender):
    """Used when push notifications are disabled; delivers nothing."""

    async def send(self, token: str, message: PushMessage) -> bool:
        logger.debug(f"Push notifications disabled, skipping '{message.title}'")
        return False


class FirebasePushSender(PushSender):
    """Firebase Cloud Messaging sender; the blocking SDK call runs in a worker thread."""

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        breaker: Optional[CircuitBreaker] = None,
        app: Optional[firebase_admin.App] = None,
    ):
        self.app = app or _firebase_app(credentials_path)
        self.breaker = breaker

    async def send(self, token: str, message: PushMessage) -> bool:
        if self.breaker is not None:
            outcome = await self.breaker.call(asyncio.to_thread, self._send_sync, token, message)
        else:
            outcome = await asyncio.to_thread(self._send_sync, token, message)

        if outcome is None:
            raise InvalidPushTokenError(token)

        logger.debug(f"Push accepted by FCM: {outcome}")
        return True

    def _send_sync(self, token: str, message: PushMessage) -> Optional[str]:
        fcm_message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.data,
            android=messaging.AndroidConfig(
                notification=messaging.AndroidNotification(sound=message.sound)
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound=message.sound))
            ),
        )
        try:
            return messaging.send(fcm_message, app=self.app)
        except _INVALID_TOKEN_ERRORS:
            return None
        except firebase_exceptions.FirebaseError as e:
            raise PushServiceError(str(e)) from e


def _firebase_app(credentials_path: Optional[str]) -> firebase_admin.App:
    """Return the default Firebase app, initializing it once."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        if credentials_path:
            cred = credentials.Certificate(credentials_path)
        else:
            cred = credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin initialized for push notifications")
        return app
