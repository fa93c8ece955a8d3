import uuid

import pytest

from artist_booking_platform.models.booking import BookingStatus
from artist_booking_platform.models.notification_preference import NotificationPreference
from artist_booking_platform.models.user import ActorRole
from artist_booking_platform.services.notification_service import NotificationDispatcher

from conftest import InMemoryNotificationStore, InMemoryUserDirectory, RecordingPushSender, make_booking


@pytest.fixture
def users():
    return InMemoryUserDirectory()


@pytest.fixture
def store():
    return InMemoryNotificationStore()


@pytest.fixture
def push():
    return RecordingPushSender()


@pytest.fixture
def dispatcher(store, push, users):
    return NotificationDispatcher(store, push, users=users)


@pytest.fixture
def parties(users, store):
    customer = users.add(ActorRole.CUSTOMER, locale="en-US")
    artist = users.add(ActorRole.ARTIST, locale="ko")
    store.tokens[customer.id] = ["customer-phone", "customer-tablet"]
    store.tokens[artist.id] = ["artist-phone"]
    booking = make_booking(customer_id=customer.id, artist_id=artist.id)
    return customer, artist, booking


def test_new_booking_goes_to_the_artist(dispatcher, parties):
    customer, artist, booking = parties

    assert dispatcher.recipients(booking, BookingStatus.PENDING) == [artist.id]


@pytest.mark.parametrize("status", [BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED])
def test_artist_driven_statuses_go_to_the_customer(dispatcher, parties, status):
    customer, artist, booking = parties

    assert dispatcher.recipients(booking, status, artist.id) == [customer.id]


def test_cancellation_skips_the_actor(dispatcher, parties):
    customer, artist, booking = parties

    assert dispatcher.recipients(booking, BookingStatus.CANCELLED, customer.id) == [artist.id]
    assert dispatcher.recipients(booking, BookingStatus.CANCELLED, artist.id) == [customer.id]


def test_admin_cancellation_reaches_both_parties(dispatcher, parties):
    customer, artist, booking = parties

    assert dispatcher.recipients(booking, BookingStatus.CANCELLED, uuid.uuid4()) == [customer.id, artist.id]


@pytest.mark.anyio
async def test_dispatch_stores_inbox_record_and_pushes_every_device(dispatcher, parties, store, push):
    customer, artist, booking = parties

    delivered = await dispatcher.dispatch(booking, BookingStatus.CONFIRMED, artist.id)

    assert delivered == 2
    assert [token for token, _ in push.sent] == ["customer-phone", "customer-tablet"]
    [notification] = store.notifications
    assert notification.user_id == customer.id
    assert notification.type == "booking_confirmed"
    assert notification.push_sent is True
    assert notification.data == {
        "type": "booking_status_changed",
        "bookingId": str(booking.id),
        "status": "confirmed",
    }


@pytest.mark.anyio
async def test_dispatch_uses_recipient_locale(dispatcher, parties, push):
    customer, artist, booking = parties

    await dispatcher.dispatch(booking, BookingStatus.CONFIRMED, artist.id)
    await dispatcher.dispatch(booking, BookingStatus.PENDING, customer.id)

    customer_message = push.sent[0][1]
    artist_message = push.sent[-1][1]
    assert customer_message.title == "Booking confirmed"
    assert customer_message.body.startswith("Booking has been confirmed.")
    assert artist_message.title == "새 예약 요청"
    assert artist_message.body.startswith("예약이 생성되었습니다.")


@pytest.mark.anyio
async def test_declined_is_not_notified(dispatcher, parties, store, push):
    customer, artist, booking = parties

    assert await dispatcher.dispatch(booking, BookingStatus.DECLINED, artist.id) == 0
    assert store.notifications == []
    assert push.sent == []


@pytest.mark.anyio
async def test_unregistered_token_is_deactivated(dispatcher, parties, store, push):
    customer, artist, booking = parties
    push.invalid_tokens.add("customer-tablet")

    delivered = await dispatcher.dispatch(booking, BookingStatus.COMPLETED, artist.id)

    assert delivered == 1
    assert store.deactivated == ["customer-tablet"]
    assert await store.active_tokens_for_user(customer.id) == ["customer-phone"]


@pytest.mark.anyio
async def test_push_outage_keeps_inbox_record(dispatcher, parties, store, push):
    customer, artist, booking = parties
    push.failing_tokens.update({"customer-phone", "customer-tablet"})

    delivered = await dispatcher.dispatch(booking, BookingStatus.IN_PROGRESS, artist.id)

    assert delivered == 0
    [notification] = store.notifications
    assert notification.push_sent is False
    assert store.deactivated == []


@pytest.mark.anyio
async def test_user_without_devices_still_gets_inbox_record(dispatcher, parties, store, push):
    customer, artist, booking = parties
    store.tokens[customer.id] = []

    assert await dispatcher.dispatch(booking, BookingStatus.CONFIRMED, artist.id) == 0
    assert len(store.notifications) == 1


@pytest.mark.anyio
async def test_inbox_failure_propagates(dispatcher, parties, store):
    customer, artist, booking = parties
    store.fail_create = True

    with pytest.raises(RuntimeError):
        await dispatcher.dispatch(booking, BookingStatus.CONFIRMED, artist.id)


@pytest.mark.anyio
async def test_unknown_user_falls_back_to_default_locale(store, push):
    dispatcher = NotificationDispatcher(store, push, users=InMemoryUserDirectory(), default_locale="en")
    booking = make_booking()
    store.tokens[booking.customer_id] = ["device"]

    await dispatcher.dispatch(booking, BookingStatus.COMPLETED)

    assert push.sent[0][1].title == "Service completed"


@pytest.mark.anyio
async def test_disabled_preference_skips_inbox_and_push(dispatcher, parties, store, push):
    customer, artist, booking = parties
    store.disabled.add((customer.id, "booking_confirmed"))

    assert await dispatcher.dispatch(booking, BookingStatus.CONFIRMED, artist.id) == 0
    assert store.notifications == []
    assert push.sent == []


@pytest.mark.anyio
async def test_preference_is_per_recipient_and_per_type(dispatcher, parties, store, push):
    customer, artist, booking = parties
    store.disabled.add((customer.id, "booking_cancelled"))
    store.disabled.add((artist.id, "booking_confirmed"))

    delivered = await dispatcher.dispatch(booking, BookingStatus.CANCELLED, uuid.uuid4())

    assert delivered == 1
    [notification] = store.notifications
    assert notification.user_id == artist.id
    assert [token for token, _ in push.sent] == ["artist-phone"]


@pytest.mark.anyio
async def test_inbox_failure_for_one_party_still_notifies_the_other(dispatcher, parties, store, push):
    customer, artist, booking = parties
    store.fail_for.add(customer.id)

    with pytest.raises(RuntimeError):
        await dispatcher.dispatch(booking, BookingStatus.CANCELLED, uuid.uuid4())

    [notification] = store.notifications
    assert notification.user_id == artist.id
    assert notification.type == "booking_cancelled"
    assert [token for token, _ in push.sent] == ["artist-phone"]


def test_new_booking_requests_follow_the_created_switch():
    preference = NotificationPreference(booking_created=False, booking_confirmed=True)

    assert not preference.allows("booking_pending")
    assert preference.allows("booking_confirmed")
    assert preference.allows("booking_completed")
