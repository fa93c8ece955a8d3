import asyncio
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from artist_booking_platform.domain.transition import Actor, TransitionRequest
from artist_booking_platform.models.booking import Booking, BookingStatus
from artist_booking_platform.models.payment import PaymentAuthorizationStatus
from artist_booking_platform.models.user import ActorRole
from artist_booking_platform.utils.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ConflictError,
    ForbiddenTransitionError,
    InvalidTransitionError,
    PaymentServiceError,
    ValidationError,
)

from conftest import FIXED_NOW


async def confirmed_booking(harness) -> Booking:
    booking = await harness.create_booking()
    return await harness.service.accept(booking.id, harness.artist)


# Creation


@pytest.mark.anyio
async def test_create_starts_pending_with_single_history_entry(harness):
    booking = await harness.create_booking()

    assert booking.status == BookingStatus.PENDING
    assert booking.status_history == [{"status": "pending", "timestamp": FIXED_NOW.isoformat()}]


@pytest.mark.anyio
async def test_create_notifies_artist_and_records_audit(harness):
    booking = await harness.create_booking()

    [notification] = harness.notification_store.notifications
    assert notification.user_id == harness.artist.id
    assert notification.type == "booking_pending"
    assert [token for token, _ in harness.push.sent] == ["artist-device"]

    [entry] = harness.audit_sink.entries
    assert entry.action == "create"
    assert entry.entity_id == booking.id
    assert entry.changes == {"status": {"old": None, "new": "pending"}}


@pytest.mark.anyio
async def test_create_rejects_past_date(harness):
    with pytest.raises(ValidationError) as exc_info:
        await harness.create_booking(scheduled_date=FIXED_NOW - timedelta(days=1))

    assert "scheduled_date" in exc_info.value.field_errors
    assert harness.bookings.rows == {}


@pytest.mark.anyio
async def test_create_rejects_now_as_date(harness):
    with pytest.raises(ValidationError):
        await harness.create_booking(scheduled_date=FIXED_NOW)


@pytest.mark.anyio
async def test_create_collects_every_field_error(harness):
    with pytest.raises(ValidationError) as exc_info:
        await harness.create_booking(
            artist_id=None,
            service_type="  ",
            total_amount=Decimal("-1"),
            scheduled_date=None,
        )

    assert set(exc_info.value.field_errors) == {"artist_id", "service_type", "total_amount", "scheduled_date"}


@pytest.mark.anyio
async def test_customer_cannot_book_themselves(harness):
    with pytest.raises(ValidationError) as exc_info:
        await harness.create_booking(artist_id=harness.customer.id)

    assert exc_info.value.field_errors["artist_id"] == ["Customers cannot book themselves"]


@pytest.mark.anyio
async def test_artist_must_be_a_known_active_artist(harness):
    with pytest.raises(ValidationError):
        await harness.create_booking(artist_id=uuid.uuid4())

    with pytest.raises(ValidationError):
        await harness.create_booking(artist_id=harness.admin.id)

    harness.users.users[harness.artist.id].is_active = False
    with pytest.raises(ValidationError):
        await harness.create_booking()


@pytest.mark.anyio
async def test_naive_date_is_treated_as_utc(harness):
    naive = (FIXED_NOW + timedelta(days=2)).replace(tzinfo=None)

    booking = await harness.create_booking(scheduled_date=naive)

    assert booking.scheduled_date == FIXED_NOW + timedelta(days=2)


# Transitions


@pytest.mark.anyio
async def test_full_happy_path(harness):
    booking = await harness.create_booking()
    service = harness.service

    await service.accept(booking.id, harness.artist)
    await service.start(booking.id, harness.artist)
    completed = await service.complete(booking.id, harness.artist)

    assert completed.status == BookingStatus.COMPLETED
    assert [entry["status"] for entry in completed.status_history] == [
        "pending", "confirmed", "in_progress", "completed",
    ]
    assert harness.payment_store.rows[booking.id].status == PaymentAuthorizationStatus.AUTHORIZED


@pytest.mark.anyio
async def test_accept_authorizes_payment_and_notifies_customer(harness):
    booking = await harness.create_booking()

    confirmed = await harness.service.accept(booking.id, harness.artist)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert harness.provider.authorize_calls == [booking.id]
    assert harness.payment_store.rows[booking.id].is_active
    assert harness.notification_store.notifications[-1].user_id == harness.customer.id
    assert harness.notification_store.notifications[-1].type == "booking_confirmed"

    entry = harness.audit_sink.entries[-1]
    assert entry.action == "status_change"
    assert entry.actor_id == harness.artist.id
    assert entry.changes == {"status": {"old": "pending", "new": "confirmed"}}
    assert entry.extra == {"actor_role": "artist"}


@pytest.mark.anyio
async def test_customer_cannot_accept(harness):
    booking = await harness.create_booking()

    with pytest.raises(ForbiddenTransitionError):
        await harness.service.accept(booking.id, harness.customer)

    assert harness.bookings.rows[booking.id].status == BookingStatus.PENDING
    assert harness.provider.authorize_calls == []


@pytest.mark.anyio
async def test_other_artist_cannot_touch_booking(harness):
    booking = await harness.create_booking()
    stranger = Actor(uuid.uuid4(), ActorRole.ARTIST)

    with pytest.raises(AuthorizationError):
        await harness.service.accept(booking.id, stranger)

    with pytest.raises(AuthorizationError):
        await harness.service.get(booking.id, Actor(uuid.uuid4(), ActorRole.CUSTOMER))


@pytest.mark.anyio
async def test_invalid_transition_changes_nothing(harness):
    booking = await harness.create_booking()

    with pytest.raises(InvalidTransitionError):
        await harness.service.complete(booking.id, harness.artist)

    stored = harness.bookings.rows[booking.id]
    assert stored.status == BookingStatus.PENDING
    assert len(stored.status_history) == 1
    assert harness.bookings.cas_calls == 0


@pytest.mark.anyio
async def test_repeating_current_status_is_a_silent_no_op(harness):
    booking = await confirmed_booking(harness)
    audit_count = len(harness.audit_sink.entries)

    again = await harness.service.accept(booking.id, harness.artist)

    assert again.status == BookingStatus.CONFIRMED
    assert len(again.status_history) == 2
    assert len(harness.provider.authorize_calls) == 1
    assert len(harness.audit_sink.entries) == audit_count


@pytest.mark.anyio
async def test_unknown_booking_raises_not_found(harness):
    with pytest.raises(BookingNotFoundError):
        await harness.service.accept(uuid.uuid4(), harness.artist)


@pytest.mark.anyio
async def test_customer_cancels_pending_and_artist_is_told(harness):
    booking = await harness.create_booking()

    cancelled = await harness.service.cancel(booking.id, harness.customer, reason="changed plans")

    assert cancelled.status == BookingStatus.CANCELLED
    assert harness.notification_store.notifications[-1].user_id == harness.artist.id
    assert harness.audit_sink.entries[-1].extra == {"actor_role": "customer", "reason": "changed plans"}
    assert harness.provider.void_calls == []


@pytest.mark.anyio
async def test_customer_cannot_cancel_confirmed_booking(harness):
    booking = await confirmed_booking(harness)

    with pytest.raises(ForbiddenTransitionError):
        await harness.service.cancel(booking.id, harness.customer)


@pytest.mark.anyio
async def test_decline_skips_notification(harness):
    booking = await harness.create_booking()
    before = len(harness.notification_store.notifications)

    declined = await harness.service.decline(booking.id, harness.artist, reason="fully booked")

    assert declined.status == BookingStatus.DECLINED
    assert len(harness.notification_store.notifications) == before
    assert harness.failures.records == []


@pytest.mark.anyio
async def test_admin_cancel_of_in_progress_booking_voids_payment(harness):
    booking = await confirmed_booking(harness)
    await harness.service.start(booking.id, harness.artist)

    cancelled = await harness.service.cancel(booking.id, harness.admin, reason="artist unavailable")

    assert cancelled.status == BookingStatus.CANCELLED
    assert harness.provider.void_calls == ["FP-1"]
    assert harness.payment_store.rows[booking.id].status == PaymentAuthorizationStatus.VOIDED
    recipients = {n.user_id for n in harness.notification_store.notifications[-2:]}
    assert recipients == {harness.customer.id, harness.artist.id}


@pytest.mark.anyio
async def test_admin_cannot_cancel_completed_booking(harness):
    booking = await confirmed_booking(harness)
    await harness.service.start(booking.id, harness.artist)
    await harness.service.complete(booking.id, harness.artist)

    with pytest.raises(InvalidTransitionError):
        await harness.service.cancel(booking.id, harness.admin)


@pytest.mark.anyio
async def test_generic_transition_request(harness):
    booking = await harness.create_booking()

    updated = await harness.service.transition(
        TransitionRequest.for_actor(booking.id, harness.artist, BookingStatus.DECLINED, "no availability")
    )

    assert updated.status == BookingStatus.DECLINED


@pytest.mark.anyio
async def test_history_returns_entries_in_order(harness):
    booking = await confirmed_booking(harness)

    history = await harness.service.history(booking.id, harness.customer)

    assert [entry["status"] for entry in history] == ["pending", "confirmed"]


# Side effects


@pytest.mark.anyio
async def test_void_failure_does_not_block_cancellation(harness):
    booking = await confirmed_booking(harness)
    harness.provider.void_error = PaymentServiceError("gateway unavailable")

    cancelled = await harness.service.cancel(booking.id, harness.admin)

    assert cancelled.status == BookingStatus.CANCELLED
    assert harness.bookings.rows[booking.id].status == BookingStatus.CANCELLED
    [failure] = harness.failures.for_effect("payment")
    assert failure.operation == "void"
    assert failure.booking_id == booking.id
    assert harness.notification_store.notifications[-1].type == "booking_cancelled"
    assert harness.audit_sink.entries[-1].changes["status"]["new"] == "cancelled"


@pytest.mark.anyio
async def test_declined_authorization_is_recorded_for_reconciliation(harness):
    booking = await harness.create_booking()
    harness.provider.decline_authorization = True

    confirmed = await harness.service.accept(booking.id, harness.artist)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert harness.payment_store.rows[booking.id].status == PaymentAuthorizationStatus.FAILED
    [failure] = harness.failures.for_effect("payment")
    assert failure.operation == "authorize"
    assert "card declined" in failure.error


@pytest.mark.anyio
async def test_slow_side_effect_times_out_and_is_recorded(harness):
    booking = await harness.create_booking()
    harness.provider.delay = 5

    confirmed = await harness.service.accept(booking.id, harness.artist)

    assert confirmed.status == BookingStatus.CONFIRMED
    [failure] = harness.failures.for_effect("payment")
    assert failure.error == "timed out after 0.5s"
    assert harness.notification_store.notifications[-1].type == "booking_confirmed"


@pytest.mark.anyio
async def test_cancel_during_slow_authorization_releases_the_hold(harness):
    booking = await harness.create_booking()
    harness.provider.delay = 0.2

    accepting = asyncio.create_task(harness.service.accept(booking.id, harness.artist))
    await asyncio.sleep(0.05)
    cancelled = await harness.service.cancel(booking.id, harness.admin)
    await accepting

    assert cancelled.status == BookingStatus.CANCELLED
    authorization = harness.payment_store.rows[booking.id]
    assert authorization.status == PaymentAuthorizationStatus.VOIDED
    assert not authorization.is_active
    assert harness.provider.void_calls == ["FP-1"]
    assert harness.failures.records == []


@pytest.mark.anyio
async def test_failed_late_void_is_recorded_for_reconciliation(harness):
    booking = await harness.create_booking()
    harness.provider.delay = 0.2

    accepting = asyncio.create_task(harness.service.accept(booking.id, harness.artist))
    await asyncio.sleep(0.05)
    await harness.service.cancel(booking.id, harness.admin)
    harness.provider.void_error = PaymentServiceError("gateway unavailable")
    await accepting

    assert harness.payment_store.rows[booking.id].is_active
    [failure] = harness.failures.for_effect("payment")
    assert failure.operation == "authorize"
    assert "gateway unavailable" in failure.error


@pytest.mark.anyio
async def test_audit_and_notification_failures_are_recorded(harness):
    booking = await harness.create_booking()
    harness.audit_sink.fail = True
    harness.notification_store.fail_create = True

    confirmed = await harness.service.accept(booking.id, harness.artist)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert harness.payment_store.rows[booking.id].is_active
    assert {r.effect for r in harness.failures.records} == {"audit", "notification"}


@pytest.mark.anyio
async def test_failure_store_outage_is_swallowed(harness):
    booking = await harness.create_booking()
    harness.audit_sink.fail = True

    async def broken_record(*args, **kwargs):
        raise RuntimeError("database gone")

    harness.failures.record = broken_record

    confirmed = await harness.service.accept(booking.id, harness.artist)

    assert confirmed.status == BookingStatus.CONFIRMED


# Concurrency


@pytest.mark.anyio
async def test_concurrent_accept_and_cancel_one_wins(harness):
    booking = await harness.create_booking()
    harness.bookings.load_barrier = asyncio.Barrier(2)

    results = await asyncio.gather(
        harness.service.accept(booking.id, harness.artist),
        harness.service.cancel(booking.id, harness.customer),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConflictError)

    stored = harness.bookings.rows[booking.id]
    assert stored.status == winners[0].status
    assert len(stored.status_history) == 2


@pytest.mark.anyio
async def test_concurrent_double_accept_authorizes_once(harness):
    booking = await harness.create_booking()
    harness.bookings.load_barrier = asyncio.Barrier(2)

    results = await asyncio.gather(
        harness.service.accept(booking.id, harness.artist),
        harness.service.accept(booking.id, harness.artist),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert len(harness.provider.authorize_calls) == 1
    assert harness.failures.records == []
