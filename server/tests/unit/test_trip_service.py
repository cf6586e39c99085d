"""Unit tests for the trip catalog service."""

from datetime import date, datetime, timezone

import pytest

from busbooking.core.exceptions import NotFoundError, ValidationError
from busbooking.schemas.trip import CreateTripRequest, SearchTripsRequest
from busbooking.services.trip_service import TripService, parse_uuid


def _request(**overrides) -> CreateTripRequest:
    data = {
        "name": "Shree Ram Travels Express",
        "origin": "Mumbai",
        "destination": "Nashik",
        "departure_time": datetime(2026, 3, 5, 21, 0),
        "seat_count": 4,
        "fare_amount": 450,
    }
    data.update(overrides)
    return CreateTripRequest(**data)


@pytest.mark.asyncio
async def test_create_trip_numbers_seats_by_default(test_session):
    trip = await TripService(test_session).create_trip(_request())

    assert trip.id is not None
    assert trip.seat_ids == ["1", "2", "3", "4"]
    assert trip.seat_count == 4
    assert trip.currency == "INR"


@pytest.mark.asyncio
async def test_create_trip_stores_naive_utc(test_session):
    departure = datetime(2026, 3, 5, 21, 0, tzinfo=timezone.utc)

    trip = await TripService(test_session).create_trip(_request(departure_time=departure))

    assert trip.departure_time == datetime(2026, 3, 5, 21, 0)


def test_seat_labels_must_match_count():
    with pytest.raises(ValueError):
        _request(seat_count=3, seat_ids=["A1", "A2"])
    with pytest.raises(ValueError):
        _request(seat_count=2, seat_ids=["A1", "A1"])


@pytest.mark.asyncio
async def test_get_trip(test_session, trip):
    service = TripService(test_session)

    assert (await service.get_trip(str(trip.id))).name == trip.name

    with pytest.raises(NotFoundError):
        await service.get_trip("8f14e45f-ceea-467a-9575-2b5d1e6a3e11")
    with pytest.raises(ValidationError):
        await service.get_trip("not-a-uuid")


def test_parse_uuid_reports_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        parse_uuid("trip-1", "trip")

    assert exc_info.value.problem_details["errors"] == {"trip_id": "must be a UUID"}


@pytest.mark.asyncio
async def test_search_trips(test_session):
    service = TripService(test_session)
    late = await service.create_trip(_request(departure_time=datetime(2026, 3, 5, 22, 0)))
    early = await service.create_trip(_request(departure_time=datetime(2026, 3, 5, 6, 0)))
    await service.create_trip(_request(departure_time=datetime(2026, 3, 6, 6, 0)))
    await service.create_trip(_request(origin="Pune", destination="Goa"))

    found = await service.search_trips(
        SearchTripsRequest(origin="mumbai", destination="NASH", travel_date=date(2026, 3, 5))
    )

    assert [t.id for t in found] == [early.id, late.id]

    assert len(await service.search_trips(SearchTripsRequest(destination="goa"))) == 1
    assert len(await service.search_trips(SearchTripsRequest(limit=2))) == 2
    assert len(await service.list_trip_ids()) == 4
