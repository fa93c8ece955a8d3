"""
Payment coordination for booking transitions.

A booking holds at most one authorization. Confirming a booking authorizes its
total amount; cancelling or declining it voids an active authorization.
"""

import logging
from typing import Optional

from ..models.booking import Booking
from ..models.payment import PaymentAuthorization, PaymentAuthorizationStatus
from ..payments.base import PaymentProvider
from ..repositories.base import PaymentAuthorizationStore
from ..utils.circuit_breaker import CircuitBreaker
from ..utils.exceptions import PaymentServiceError

logger = logging.getLogger(__name__)


class PaymentCoordinator:
    """Authorizes and voids booking payments through a provider."""

    def __init__(
        self,
        provider: PaymentProvider,
        store: PaymentAuthorizationStore,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.provider = provider
        self.store = store
        self.breaker = breaker

    async def authorize(self, booking: Booking) -> PaymentAuthorization:
        """
        Authorize the booking's total amount.

        Returns the existing record untouched when the booking is already
        authorized. A declined authorization is stored as ``failed``; it does not
        raise and does not change the booking.

        Raises:
            ExternalServiceError: The provider could not be reached
        """
        existing = await self.store.get_for_booking(booking.id)
        if existing is not None and existing.is_active:
            logger.debug(f"Booking {booking.id} already authorized ({existing.transaction_id})")
            return existing

        result = await self._call(self.provider.authorize, booking)

        if result.success:
            authorization = PaymentAuthorization(
                booking_id=booking.id,
                provider=result.provider,
                status=PaymentAuthorizationStatus.AUTHORIZED,
                transaction_id=result.transaction_id,
            )
            logger.info(
                f"Payment authorized for booking {booking.id}",
                extra={
                    "booking_id": str(booking.id),
                    "provider": result.provider,
                    "transaction_id": result.transaction_id,
                }
            )
        else:
            authorization = PaymentAuthorization(
                booking_id=booking.id,
                provider=result.provider,
                status=PaymentAuthorizationStatus.FAILED,
                transaction_id=result.transaction_id,
                failure_reason=result.error_message,
            )
            logger.warning(
                f"Payment authorization failed for booking {booking.id}: {result.error_message}",
                extra={"booking_id": str(booking.id), "provider": result.provider}
            )

        return await self.store.save(authorization)

    async def void(self, booking: Booking) -> Optional[PaymentAuthorization]:
        """
        Void the booking's active authorization.

        No-op when nothing is authorized: returns ``None`` if no record exists,
        or the existing voided/failed record unchanged.

        Raises:
            PaymentServiceError: The provider refused to release the hold
            ExternalServiceError: The provider could not be reached
        """
        existing = await self.store.get_for_booking(booking.id)
        if existing is None or not existing.is_active:
            return existing

        result = await self._call(self.provider.void, booking, existing.transaction_id)
        if not result.success:
            raise PaymentServiceError(
                f"Void of transaction {existing.transaction_id} rejected: {result.error_message}",
                details={"booking_id": str(booking.id), "transaction_id": existing.transaction_id}
            )

        existing.status = PaymentAuthorizationStatus.VOIDED
        saved = await self.store.save(existing)

        logger.info(
            f"Payment voided for booking {booking.id}",
            extra={"booking_id": str(booking.id), "transaction_id": existing.transaction_id}
        )
        return saved

    async def _call(self, func, *args):
        if self.breaker is None:
            return await func(*args)
        return await self.breaker.call(func, *args)
