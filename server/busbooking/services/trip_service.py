"""Trip catalog service: the read-mostly record store the booking core depends on."""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..models.trip import Trip
from ..schemas.trip import CreateTripRequest, SearchTripsRequest

logger = logging.getLogger(__name__)


def parse_uuid(value: str | UUID, resource_type: str) -> UUID:
    """Parse an identifier from a request, reporting bad input as a validation error."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        raise ValidationError(
            detail=f"Invalid {resource_type} id '{value}'",
            errors={f"{resource_type}_id": "must be a UUID"},
        ) from None


class TripService:
    """Service for trip catalog operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_trip(self, request: CreateTripRequest) -> Trip:
        """
        Create a new trip.

        Args:
            request: Trip creation request

        Returns:
            Created trip entity
        """
        seat_ids = request.seat_ids or [str(n) for n in range(1, request.seat_count + 1)]

        trip = Trip(
            name=request.name,
            origin=request.origin,
            destination=request.destination,
            departure_time=_naive_utc(request.departure_time),
            seat_ids=seat_ids,
            seat_count=len(seat_ids),
            fare_amount=request.fare_amount,
            currency=request.currency,
        )

        self.db.add(trip)
        await self.db.commit()
        await self.db.refresh(trip)

        logger.info(
            "Trip created successfully",
            extra={
                "trip_id": str(trip.id),
                "route": f"{trip.origin}->{trip.destination}",
                "departure_time": trip.departure_time.isoformat(),
                "seat_count": trip.seat_count,
                "fare_amount": trip.fare_amount,
            }
        )

        return trip

    async def get_trip(self, trip_id: UUID | str) -> Trip:
        """
        Get a trip by ID or raise NotFoundError.

        Raises:
            NotFoundError: If trip not found
        """
        trip_uuid = parse_uuid(trip_id, "trip")
        stmt = select(Trip).where(Trip.id == trip_uuid)
        result = await self.db.execute(stmt)
        trip = result.scalar_one_or_none()
        if not trip:
            logger.warning("Trip not found", extra={"trip_id": str(trip_id)})
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))
        return trip

    async def search_trips(self, request: SearchTripsRequest) -> list[Trip]:
        """Search trips by route and travel date, earliest departure first."""
        stmt = select(Trip)

        if request.origin:
            stmt = stmt.where(func.lower(Trip.origin).contains(request.origin.lower()))

        if request.destination:
            stmt = stmt.where(func.lower(Trip.destination).contains(request.destination.lower()))

        if request.travel_date:
            day_start = datetime.combine(request.travel_date, datetime.min.time())
            stmt = stmt.where(
                Trip.departure_time >= day_start,
                Trip.departure_time < day_start + timedelta(days=1),
            )

        stmt = stmt.order_by(Trip.departure_time, Trip.id).limit(request.limit)
        result = await self.db.execute(stmt)
        trips = list(result.scalars())

        logger.info(
            "Trip search completed",
            extra={
                "total_found": len(trips),
                "origin": request.origin,
                "destination": request.destination,
                "travel_date": request.travel_date.isoformat() if request.travel_date else None,
            }
        )

        return trips

    async def list_trip_ids(self) -> list[UUID]:
        result = await self.db.execute(select(Trip.id))
        return list(result.scalars())


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
