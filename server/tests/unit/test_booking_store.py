"""Unit tests for booking storage and token generation."""

import re
from datetime import datetime, timedelta

import pytest

from busbooking.core.exceptions import ConflictError
from busbooking.models.booking import Booking, BookingStatus
from busbooking.services.booking_store import BookingStore, generate_booking_token, to_base36


def _booking(trip, seat_ids, expires_at=None, **fields) -> Booking:
    return Booking(
        trip_id=trip.id,
        customer_name="Asha Patil",
        email="asha@example.com",
        phone="9800000001",
        seat_ids=list(seat_ids),
        total_amount=trip.fare_amount * len(seat_ids),
        currency=trip.currency,
        status=BookingStatus.PENDING.value,
        version=1,
        expires_at=expires_at or datetime(2026, 3, 1, 9, 15),
        **fields,
    )


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "Z"
    assert to_base36(36) == "10"
    assert to_base36(1295) == "ZZ"


def test_booking_token_format():
    token = generate_booking_token(datetime(2026, 3, 1, 9, 0))

    assert re.fullmatch(r"TKT-[0-9A-Z]+", token)
    assert token.startswith("TKT-" + to_base36(1772355600000))
    assert len(token) == len("TKT-") + len(to_base36(1772355600000)) + 4


@pytest.mark.asyncio
async def test_add_assigns_token_and_logs_creation(test_session, trip):
    store = BookingStore(test_session)

    booking = await store.add(_booking(trip, ["A1"]))
    await test_session.commit()

    assert booking.token.startswith("TKT-")
    assert (await store.get_by_token(booking.token)).id == booking.id

    transitions = await store.transitions(booking)
    assert [(t.from_status, t.to_status, t.reason) for t in transitions] == [(None, "PENDING", "created")]


@pytest.mark.asyncio
async def test_update_applies_changes_and_bumps_version(test_session, trip):
    store = BookingStore(test_session)
    booking = await store.add(_booking(trip, ["A1"]))
    await test_session.commit()

    updated = await store.update(
        booking,
        BookingStatus.PENDING,
        reason="payment_confirmed",
        status=BookingStatus.CONFIRMED,
        gateway_txn_id="cf_1",
        paid_at=datetime(2026, 3, 1, 9, 5),
    )
    await test_session.commit()

    assert updated.status == BookingStatus.CONFIRMED.value
    assert updated.version == 2
    assert updated.gateway_txn_id == "cf_1"

    transitions = await store.transitions(booking)
    assert transitions[-1].from_status == "PENDING"
    assert transitions[-1].to_status == "CONFIRMED"
    assert transitions[-1].reason == "payment_confirmed"


@pytest.mark.asyncio
async def test_update_without_status_change_records_no_transition(test_session, trip):
    store = BookingStore(test_session)
    booking = await store.add(_booking(trip, ["A2"]))

    await store.update(booking, BookingStatus.PENDING, order_id="ORD-1-ABCDE")
    await test_session.commit()

    assert booking.order_id == "ORD-1-ABCDE"
    assert (await store.get_by_order_id("ORD-1-ABCDE")).token == booking.token
    assert len(await store.transitions(booking)) == 1


@pytest.mark.asyncio
async def test_update_with_stale_status_conflicts(test_session, trip):
    store = BookingStore(test_session)
    booking = await store.add(_booking(trip, ["A1"]))
    await test_session.commit()

    with pytest.raises(ConflictError):
        await store.update(booking, BookingStatus.CONFIRMED, status=BookingStatus.CANCELLED)


@pytest.mark.asyncio
async def test_update_with_stale_version_conflicts(test_session, trip):
    store = BookingStore(test_session)
    booking = await store.add(_booking(trip, ["A1"]))
    await test_session.commit()
    token = booking.token

    await store.update(booking, BookingStatus.PENDING, order_id="ORD-1-AAAAA")
    await test_session.commit()

    # A reader that loaded the booking before that write
    booking.version = 1
    with pytest.raises(ConflictError):
        await store.update(booking, BookingStatus.PENDING, status=BookingStatus.CANCELLED)
    await test_session.rollback()

    stored = await store.get_by_token(token)
    assert stored.status == BookingStatus.PENDING.value
    assert stored.version == 2


@pytest.mark.asyncio
async def test_list_recent_is_newest_first(test_session, trip):
    store = BookingStore(test_session)
    older = await store.add(_booking(trip, ["A1"], created_at=datetime(2026, 3, 1, 8, 0)))
    newer = await store.add(_booking(trip, ["A2"], created_at=datetime(2026, 3, 1, 8, 30)))
    await test_session.commit()

    listed = await store.list_recent(limit=10)
    assert [b.token for b in listed] == [newer.token, older.token]

    assert [b.token for b in await store.list_recent(limit=1, offset=1)] == [older.token]
    assert len(await store.list_recent(trip_id=trip.id)) == 2


@pytest.mark.asyncio
async def test_list_expired_pending(test_session, trip):
    store = BookingStore(test_session)
    now = datetime(2026, 3, 1, 10, 0)
    stale = await store.add(_booking(trip, ["A1"], expires_at=now - timedelta(minutes=1)))
    await store.add(_booking(trip, ["A2"], expires_at=now + timedelta(minutes=1)))
    await test_session.commit()

    expired = await store.list_expired_pending(now, limit=10)

    assert [b.token for b in expired] == [stale.token]


@pytest.mark.asyncio
async def test_confirmed_totals_and_delete_for_trip(test_session, trip):
    store = BookingStore(test_session)
    assert await store.confirmed_totals() == (0, 0)

    paid = await store.add(_booking(trip, ["A1", "A2"]))
    await store.add(_booking(trip, ["A3"]))
    await store.update(
        paid,
        BookingStatus.PENDING,
        status=BookingStatus.CONFIRMED,
        paid_at=datetime(2026, 3, 1, 9, 1),
    )
    await test_session.commit()

    assert await store.confirmed_totals() == (1000, 1)

    deleted = await store.delete_for_trip(trip.id)
    await test_session.commit()

    assert deleted == 2
    assert await store.list_for_trip(trip.id) == []
