"""Unit tests for the reservation engine."""

import pytest

from busbooking.core.exceptions import (
    AlreadyCancelledError,
    BookingAlreadyConfirmedError,
    NotFoundError,
    SeatsUnavailableError,
    ValidationError,
)
from busbooking.models.booking import BookingStatus


@pytest.mark.asyncio
async def test_create_booking_holds_seats(reservation_engine, trip, make_request, clock):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1", "A2"]))

    assert booking.status == BookingStatus.PENDING.value
    assert booking.token.startswith("TKT-")
    assert booking.seat_ids == ["A1", "A2"]
    assert booking.total_amount == 1000
    assert booking.currency == "INR"
    assert (booking.expires_at - clock()).total_seconds() == 900

    availability = await reservation_engine.availability(trip.id)
    assert availability == {
        "booked_seats": [],
        "unavailable_seats": ["A1", "A2"],
        "available_seats": ["A3"],
    }


@pytest.mark.asyncio
async def test_client_total_is_ignored(reservation_engine, trip, make_request):
    booking = await reservation_engine.create_booking(make_request(trip, ["A3"], total_amount=1))

    assert booking.total_amount == 500


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected(reservation_engine, trip, make_request):
    await reservation_engine.create_booking(make_request(trip, ["A1", "A2"]))

    with pytest.raises(SeatsUnavailableError) as exc_info:
        await reservation_engine.create_booking(make_request(trip, ["A2", "A3"]))

    assert exc_info.value.unavailable_seats == ["A2"]
    assert exc_info.value.problem_details["unavailable_seats"] == ["A2"]
    # The failed attempt left A3 free
    availability = await reservation_engine.availability(trip.id)
    assert availability["available_seats"] == ["A3"]
    assert len(await reservation_engine.store.list_for_trip(trip.id)) == 1


@pytest.mark.asyncio
async def test_invalid_and_duplicate_seats_are_rejected(reservation_engine, trip, make_request):
    with pytest.raises(ValidationError) as exc_info:
        await reservation_engine.create_booking(make_request(trip, ["A1", "Z9"]))
    assert exc_info.value.problem_details["errors"] == {"seat_ids": ["Z9"]}

    with pytest.raises(ValidationError) as exc_info:
        await reservation_engine.create_booking(make_request(trip, ["A1", "A1"]))
    assert exc_info.value.problem_details["errors"] == {"seat_ids": ["A1"]}

    assert await reservation_engine.store.list_for_trip(trip.id) == []


@pytest.mark.asyncio
async def test_unknown_trip(reservation_engine, trip, make_request):
    request = make_request(trip, ["A1"], trip_id="8f14e45f-ceea-467a-9575-2b5d1e6a3e11")

    with pytest.raises(NotFoundError):
        await reservation_engine.create_booking(request)


@pytest.mark.asyncio
async def test_confirm_commits_seats_and_notifies_once(reservation_engine, trip, make_request, notifications):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1", "A2"]))

    confirmed = await reservation_engine.confirm(booking.token, "cf_123", payment_method="cashfree")

    assert confirmed.status == BookingStatus.CONFIRMED.value
    assert confirmed.gateway_txn_id == "cf_123"
    assert confirmed.payment_method == "cashfree"
    assert confirmed.paid_at is not None
    assert await reservation_engine.ledger.committed_seats(trip.id) == {"A1", "A2"}
    assert notifications.qsize() == 1

    again = await reservation_engine.confirm(booking.token, "cf_123")

    assert again.status == BookingStatus.CONFIRMED.value
    assert again.version == confirmed.version
    assert notifications.qsize() == 1


@pytest.mark.asyncio
async def test_cancel_releases_seats(reservation_engine, trip, make_request):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1", "A2"]))

    cancelled = await reservation_engine.cancel(booking.token)

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancel_reason == "customer_request"
    assert (await reservation_engine.availability(trip.id))["available_seats"] == ["A1", "A2", "A3"]

    # Idempotent
    again = await reservation_engine.cancel(booking.token, "other")
    assert again.cancel_reason == "customer_request"

    rebooked = await reservation_engine.create_booking(make_request(trip, ["A2"]))
    assert rebooked.status == BookingStatus.PENDING.value


@pytest.mark.asyncio
async def test_confirmed_booking_cannot_be_cancelled(reservation_engine, trip, make_request):
    booking = await reservation_engine.create_booking(make_request(trip, ["A3"]))
    await reservation_engine.confirm(booking.token, "cf_1")

    with pytest.raises(BookingAlreadyConfirmedError):
        await reservation_engine.cancel(booking.token)

    assert await reservation_engine.ledger.committed_seats(trip.id) == {"A3"}


@pytest.mark.asyncio
async def test_confirm_after_cancel_fails(reservation_engine, trip, make_request, notifications):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1"]))
    await reservation_engine.cancel(booking.token)

    with pytest.raises(AlreadyCancelledError):
        await reservation_engine.confirm(booking.token, "cf_1")

    assert await reservation_engine.ledger.committed_seats(trip.id) == set()
    assert notifications.qsize() == 0


@pytest.mark.asyncio
async def test_pending_booking_expires_on_read(reservation_engine, trip, make_request, clock):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1"]))

    clock.advance(899)
    assert (await reservation_engine.get_booking(booking.token)).status == BookingStatus.PENDING.value

    clock.advance(1)
    expired = await reservation_engine.get_booking(booking.token)

    assert expired.status == BookingStatus.CANCELLED.value
    assert expired.cancel_reason == "expired"
    assert (await reservation_engine.availability(trip.id))["available_seats"] == ["A1", "A2", "A3"]


@pytest.mark.asyncio
async def test_payment_after_expiry_is_refused(reservation_engine, trip, make_request, clock):
    booking = await reservation_engine.create_booking(make_request(trip, ["A2"]))
    clock.advance(901)

    with pytest.raises(AlreadyCancelledError):
        await reservation_engine.confirm(booking.token, "cf_late")

    stored = await reservation_engine.store.get_by_token(booking.token)
    assert stored.status == BookingStatus.CANCELLED.value
    assert stored.cancel_reason == "expired"
    assert await reservation_engine.ledger.committed_seats(trip.id) == set()


@pytest.mark.asyncio
async def test_expire_stale_sweeps_pending_bookings(reservation_engine, trip, make_request, clock):
    first = await reservation_engine.create_booking(make_request(trip, ["A1"]))
    clock.advance(600)
    second = await reservation_engine.create_booking(make_request(trip, ["A2"]))
    third = await reservation_engine.create_booking(make_request(trip, ["A3"]))
    await reservation_engine.confirm(third.token, "cf_3")

    clock.advance(300)
    assert await reservation_engine.expire_stale() == 1

    assert (await reservation_engine.store.get_by_token(first.token)).status == BookingStatus.CANCELLED.value
    assert (await reservation_engine.store.get_by_token(second.token)).status == BookingStatus.PENDING.value

    clock.advance(600)
    assert await reservation_engine.expire_stale() == 1
    assert await reservation_engine.expire_stale() == 0

    availability = await reservation_engine.availability(trip.id)
    assert availability["booked_seats"] == ["A3"]
    assert availability["available_seats"] == ["A1", "A2"]


@pytest.mark.asyncio
async def test_attach_charge_records_order(reservation_engine, trip, make_request):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1"]))

    updated = await reservation_engine.attach_charge(booking.token, "ORD-1-ABCDE", session_ref="sess_1")

    assert updated.order_id == "ORD-1-ABCDE"
    assert updated.payment_session_ref == "sess_1"
    assert updated.status == BookingStatus.PENDING.value

    await reservation_engine.cancel(booking.token)
    with pytest.raises(AlreadyCancelledError):
        await reservation_engine.attach_charge(booking.token, "ORD-2-ABCDE")


@pytest.mark.asyncio
async def test_booking_lifecycle_is_recorded(reservation_engine, trip, make_request):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1"]))
    await reservation_engine.confirm(booking.token, "cf_1")

    transitions = await reservation_engine.store.transitions(booking)

    assert [(t.from_status, t.to_status) for t in transitions] == [
        (None, "PENDING"),
        ("PENDING", "CONFIRMED"),
    ]


@pytest.mark.asyncio
async def test_unknown_booking(reservation_engine):
    with pytest.raises(NotFoundError):
        await reservation_engine.get_booking("TKT-NOPE")
    with pytest.raises(NotFoundError):
        await reservation_engine.cancel("TKT-NOPE")


@pytest.mark.asyncio
async def test_three_seat_scenario(reservation_engine, trip, make_request):
    first = await reservation_engine.create_booking(make_request(trip, ["A1", "A2"]))
    assert first.total_amount == 1000

    with pytest.raises(SeatsUnavailableError) as exc_info:
        await reservation_engine.create_booking(make_request(trip, ["A2", "A3"]))
    assert exc_info.value.unavailable_seats == ["A2"]

    confirmed = await reservation_engine.confirm(first.token, "TXN1")
    assert confirmed.status == BookingStatus.CONFIRMED.value
    assert await reservation_engine.ledger.committed_seats(trip.id) == {"A1", "A2"}

    with pytest.raises(SeatsUnavailableError) as exc_info:
        await reservation_engine.create_booking(make_request(trip, ["A2"]))
    assert exc_info.value.unavailable_seats == ["A2"]

    last = await reservation_engine.create_booking(make_request(trip, ["A3"]))
    assert last.status == BookingStatus.PENDING.value


@pytest.mark.asyncio
async def test_cancel_after_expiry_records_expiry(reservation_engine, trip, make_request, clock):
    booking = await reservation_engine.create_booking(make_request(trip, ["A1"]))
    clock.advance(901)

    cancelled = await reservation_engine.cancel(booking.token, "changed_plans")

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancel_reason == "expired"
