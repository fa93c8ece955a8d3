"""
Collaborator assembly and FastAPI dependencies.

``build_lifecycle_service`` wires the lifecycle service from settings once at
startup; request handlers receive it through ``get_lifecycle_service``.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..domain.transition import Actor
from ..notifications.push import FirebasePushSender, LoggingPushSender, PushSender
from ..payments.base import PaymentProvider
from ..payments.kakao_pay import KakaoPayProvider
from ..repositories import (
    AuditLogRepository,
    BookingRepository,
    NotificationRepository,
    PaymentAuthorizationRepository,
    SideEffectFailureRepository,
    UserRepository,
)
from ..services.audit_service import AuditRecorder
from ..services.booking_service import BookingLifecycleService
from ..services.notification_service import NotificationDispatcher
from ..services.payment_service import PaymentCoordinator
from ..utils.auth import verify_token
from ..utils.circuit_breaker import CircuitBreaker, payment_circuit_breaker, push_circuit_breaker
from ..utils.exceptions import AuthenticationError
from ..utils.logging_config import log_security_event

logger = logging.getLogger(__name__)

# auto_error=False so a missing header becomes our 401 instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


def build_payment_provider(settings: Settings) -> PaymentProvider:
    if settings.payment_provider != "kakao_pay":
        raise ValueError(f"Unsupported payment provider: {settings.payment_provider}")
    return KakaoPayProvider(
        base_url=settings.kakao_pay_base_url,
        admin_key=settings.kakao_pay_admin_key,
        cid=settings.kakao_pay_cid,
        sandbox=settings.kakao_pay_sandbox,
        timeout=settings.side_effect_timeout_seconds,
    )


def build_push_sender(settings: Settings, breaker: Optional[CircuitBreaker] = None) -> PushSender:
    if not settings.enable_push_notifications:
        logger.info("Push notifications disabled")
        return LoggingPushSender()
    return FirebasePushSender(credentials_path=settings.firebase_credentials_path, breaker=breaker)


def build_payment_coordinator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession]
) -> PaymentCoordinator:
    breaker = None
    if settings.enable_circuit_breakers:
        breaker = payment_circuit_breaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            recovery_timeout=settings.circuit_breaker_recovery_timeout,
            timeout=settings.side_effect_timeout_seconds,
        )
    return PaymentCoordinator(
        provider=build_payment_provider(settings),
        store=PaymentAuthorizationRepository(session_factory),
        breaker=breaker,
    )


def build_lifecycle_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession]
) -> BookingLifecycleService:
    """Assemble the lifecycle service and every collaborator it needs."""
    push_breaker = None
    if settings.enable_circuit_breakers:
        push_breaker = push_circuit_breaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            recovery_timeout=settings.circuit_breaker_recovery_timeout,
            timeout=settings.side_effect_timeout_seconds,
        )

    users = UserRepository(session_factory)
    notifications = NotificationDispatcher(
        store=NotificationRepository(session_factory),
        sender=build_push_sender(settings, push_breaker),
        users=users,
        default_locale=settings.default_locale,
    )

    return BookingLifecycleService(
        store=BookingRepository(session_factory, settings.booking_number_prefix),
        payments=build_payment_coordinator(settings, session_factory),
        notifications=notifications,
        audit=AuditRecorder(AuditLogRepository(session_factory)),
        failures=SideEffectFailureRepository(session_factory),
        users=users,
        settings=settings,
    )


def get_lifecycle_service(request: Request) -> BookingLifecycleService:
    """The service built at startup and stored on ``app.state``."""
    return request.app.state.lifecycle_service


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Actor:
    """
    Identify the acting user from the bearer token.

    Raises:
        AuthenticationError: No token, or the token is invalid or expired
    """
    if credentials is None:
        raise AuthenticationError("Authentication required")

    actor = verify_token(credentials.credentials, settings.SECRET_KEY, settings.ALGORITHM)
    if actor is None:
        log_security_event(
            "invalid_token",
            {"path": request.url.path, "client_ip": request.client.host if request.client else None}
        )
        raise AuthenticationError("Could not validate credentials")

    request.state.actor = actor
    return actor
