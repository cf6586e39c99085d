"""Trip catalog Pydantic schemas."""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class CreateTripRequest(BaseModel):
    """Request schema for creating a trip."""

    name: str = Field(..., min_length=1, max_length=255, description="Bus or service name")
    origin: str = Field(..., min_length=1, max_length=128, description="Departure city")
    destination: str = Field(..., min_length=1, max_length=128, description="Arrival city")
    departure_time: datetime = Field(..., description="Departure time (ISO 8601, UTC)")
    seat_count: int = Field(40, ge=1, le=200, description="Number of seats on the bus")
    seat_ids: list[str] | None = Field(
        None,
        description="Seat labels; defaults to '1'..seat_count"
    )
    fare_amount: int = Field(..., gt=0, description="Fare per seat")
    currency: str = Field("INR", pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")

    @model_validator(mode="after")
    def check_seat_ids(self) -> "CreateTripRequest":
        if self.seat_ids is not None:
            if len(self.seat_ids) != self.seat_count:
                raise ValueError("seat_ids must contain exactly seat_count labels")
            if len(set(self.seat_ids)) != len(self.seat_ids):
                raise ValueError("seat_ids must be unique")
            if any(not seat.strip() for seat in self.seat_ids):
                raise ValueError("seat_ids must not be blank")
        return self


class GetTripRequest(BaseModel):
    """Request schema for getting a trip."""

    trip_id: str = Field(..., description="Trip to retrieve")


class SearchTripsRequest(BaseModel):
    """Request schema for searching trips."""

    origin: str | None = Field(None, description="Case-insensitive origin filter")
    destination: str | None = Field(None, description="Case-insensitive destination filter")
    travel_date: date | None = Field(None, description="Only trips departing on this day")
    limit: int = Field(50, ge=1, le=200, description="Maximum results")


class Trip(BaseModel):
    """Trip response schema."""

    id: str = Field(..., description="Unique trip ID")
    name: str = Field(..., description="Bus or service name")
    origin: str = Field(..., description="Departure city")
    destination: str = Field(..., description="Arrival city")
    departure_time: datetime = Field(..., description="Departure time (ISO 8601)")
    seat_count: int = Field(..., ge=1, description="Number of seats")
    seat_ids: list[str] = Field(..., description="Valid seat labels")
    fare_amount: int = Field(..., gt=0, description="Fare per seat")
    currency: str = Field(..., description="ISO 4217 currency code")


class SearchTripsResponse(BaseModel):
    """Response schema for trip search."""

    items: list[Trip] = Field(..., description="Matching trips")


class TripAvailability(BaseModel):
    """Seat availability snapshot for one trip."""

    trip_id: str = Field(..., description="Trip ID")
    booked_seats: list[str] = Field(..., description="Seats committed to confirmed bookings")
    unavailable_seats: list[str] = Field(..., description="Booked seats plus seats under a live hold")
    available_seats: list[str] = Field(..., description="Seats that can be requested now")
