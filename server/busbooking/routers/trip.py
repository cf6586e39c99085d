"""Trip router for the trip catalog and seat availability."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_reservation_engine, require_admin
from ..core.exceptions import ProblemDetailsException
from ..schemas.trip import (
    CreateTripRequest,
    GetTripRequest,
    SearchTripsRequest,
    SearchTripsResponse,
    Trip,
    TripAvailability,
)
from ..services.reservation_engine import ReservationEngine
from ..services.trip_service import TripService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/trip", tags=["trip"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
ADMIN_DEPENDENCY = Depends(require_admin)
ENGINE_DEPENDENCY = Depends(get_reservation_engine)


def _convert_trip_to_schema(trip_model) -> Trip:
    """Convert trip model to schema."""
    return Trip(
        id=str(trip_model.id),
        name=trip_model.name,
        origin=trip_model.origin,
        destination=trip_model.destination,
        departure_time=trip_model.departure_time,
        seat_count=trip_model.seat_count,
        seat_ids=list(trip_model.seat_ids),
        fare_amount=trip_model.fare_amount,
        currency=trip_model.currency,
    )


@router.post("/create", response_model=Trip)
async def create_trip(
    request: CreateTripRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: dict = ADMIN_DEPENDENCY,
) -> JSONResponse:
    """Create a new scheduled trip. Requires the admin role."""
    trip_service = TripService(db)

    try:
        trip = await trip_service.create_trip(request)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in trip creation",
            extra={
                "route": f"{request.origin}->{request.destination}",
                "user_id": user["user_id"],
                "error": str(e),
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e

    return JSONResponse(
        status_code=200,
        content=_convert_trip_to_schema(trip).model_dump(mode="json")
    )


@router.post("/get", response_model=Trip)
async def get_trip(
    request: GetTripRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Get a trip by ID."""
    trip = await TripService(db).get_trip(request.trip_id)
    return JSONResponse(
        status_code=200,
        content=_convert_trip_to_schema(trip).model_dump(mode="json")
    )


@router.post("/search", response_model=SearchTripsResponse)
async def search_trips(
    request: SearchTripsRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Search trips by route and travel date."""
    trips = await TripService(db).search_trips(request)
    response_data = SearchTripsResponse(items=[_convert_trip_to_schema(trip) for trip in trips])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/availability", response_model=TripAvailability)
async def trip_availability(
    request: GetTripRequest,
    engine: ReservationEngine = ENGINE_DEPENDENCY,
) -> JSONResponse:
    """
    Seat availability for a trip.

    Seats under a live hold are unavailable but not booked.
    """
    seats = await engine.availability(request.trip_id)
    response_data = TripAvailability(trip_id=request.trip_id, **seats)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
