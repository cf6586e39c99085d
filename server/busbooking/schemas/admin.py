"""Administrative Pydantic schemas."""

from pydantic import BaseModel, Field


class ResetRequest(BaseModel):
    """Request schema for the administrative data reset."""

    trip_id: str | None = Field(None, description="Reset one trip; omit to reset every trip")
    confirm: bool = Field(..., description="Must be true")


class ResetResponse(BaseModel):
    """Result of an administrative reset."""

    deleted_bookings: int = Field(..., ge=0, description="Bookings removed")
    cleared_trips: int = Field(..., ge=0, description="Trips whose seat ledger was emptied")
