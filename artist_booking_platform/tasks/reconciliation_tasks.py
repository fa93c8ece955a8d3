"""
Celery tasks that repair side effects a transition could not complete.

Only payment failures are replayed: a booking's payment must match its status,
while a missed notification or audit entry is left as recorded.
"""

import asyncio
import logging
from typing import Dict

from .celery_app import celery_app
from ..config import get_settings
from ..database import create_database_engine, create_session_factory
from ..domain.booking_state import HELD_STATUSES, RELEASED_STATUSES
from ..repositories import BookingRepository, SideEffectFailureRepository
from ..repositories.base import BookingStore, SideEffectFailureStore
from ..services.payment_service import PaymentCoordinator
from ..utils.dependencies import build_payment_coordinator
from ..utils.exceptions import NotFoundError, PlatformError

logger = logging.getLogger(__name__)


async def reconcile_payment_failures(
    bookings: BookingStore,
    failures: SideEffectFailureStore,
    payments: PaymentCoordinator,
    limit: int = 100,
) -> Dict[str, int]:
    """
    Bring each failed booking's payment in line with its current status.

    A failure is marked resolved once the authorization matches the booking:
    held for confirmed/in-progress/completed bookings, released for
    cancelled/declined ones. Failures that cannot be fixed yet stay unresolved.
    """
    summary = {"checked": 0, "resolved": 0, "failed": 0}

    for failure in await failures.list_unresolved("payment", limit=limit):
        summary["checked"] += 1
        try:
            booking = await bookings.load_booking(failure.booking_id)

            if booking.status in HELD_STATUSES:
                authorization = await payments.authorize(booking)
                if not authorization.is_active:
                    logger.warning(
                        f"Authorization for booking {booking.id} still failing: {authorization.failure_reason}"
                    )
                    summary["failed"] += 1
                    continue
            elif booking.status in RELEASED_STATUSES:
                await payments.void(booking)

            await failures.mark_resolved(failure.id)
            summary["resolved"] += 1
            logger.info(
                f"Reconciled payment for booking {booking.id} ({booking.status.value})",
                extra={"booking_id": str(booking.id), "failure_id": str(failure.id)}
            )

        except NotFoundError:
            logger.warning(f"Booking {failure.booking_id} no longer exists; dropping failure {failure.id}")
            await failures.mark_resolved(failure.id)
            summary["resolved"] += 1
        except PlatformError as e:
            logger.error(
                f"Reconciliation failed for booking {failure.booking_id}: {e.message}",
                extra={"booking_id": str(failure.booking_id), "error_code": e.error_code.value}
            )
            summary["failed"] += 1

    return summary


@celery_app.task(name="reconcile_side_effects_task")
def reconcile_side_effects_task():
    """Periodic task replaying payment side effects recorded as failed."""

    async def _reconcile():
        settings = get_settings()
        engine = create_database_engine()
        try:
            session_factory = create_session_factory(engine)
            return await reconcile_payment_failures(
                bookings=BookingRepository(session_factory, settings.booking_number_prefix),
                failures=SideEffectFailureRepository(session_factory),
                payments=build_payment_coordinator(settings, session_factory),
                limit=settings.reconciliation_batch_size,
            )
        finally:
            await engine.dispose()

    logger.info("Starting side effect reconciliation task")
    summary = asyncio.run(_reconcile())
    logger.info(f"Side effect reconciliation finished: {summary}")
    return summary
