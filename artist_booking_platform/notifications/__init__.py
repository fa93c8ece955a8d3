"""Push delivery channels."""

from .push import FirebasePushSender, LoggingPushSender, PushMessage, PushSender

__all__ = ["FirebasePushSender", "LoggingPushSender", "PushMessage", "PushSender"]
