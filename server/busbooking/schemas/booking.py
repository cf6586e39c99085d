"""Booking-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .common import Page


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class CreateBookingRequest(BaseModel):
    """Request schema for reserving seats on a trip."""

    trip_id: str = Field(..., description="Trip to book seats on")
    customer_name: str = Field(..., min_length=1, max_length=255, description="Passenger name")
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$", description="Contact email")
    phone: str = Field(..., min_length=5, max_length=32, description="Contact phone")
    seat_ids: list[str] = Field(..., min_length=1, max_length=10, description="Requested seats, in order")
    total_amount: int | None = Field(
        None,
        description="Client-side total; ignored, the amount is recomputed from the trip fare"
    )

    @field_validator("customer_name", "phone")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_token: str = Field(..., min_length=1, description="Booking token")


class CancelReason(str, Enum):
    """Reasons a customer may give when cancelling."""
    CUSTOMER_REQUEST = "customer_request"
    CHANGED_PLANS = "changed_plans"
    DUPLICATE_BOOKING = "duplicate_booking"
    OTHER = "other"


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a pending booking."""

    booking_token: str = Field(..., min_length=1, description="Booking to cancel")
    reason: CancelReason = Field(CancelReason.CUSTOMER_REQUEST, description="Why the booking is cancelled")


class ListBookingsRequest(Page):
    """Request schema for the administrative booking listing."""

    trip_id: str | None = Field(None, description="Only bookings of this trip")


class PaymentReference(BaseModel):
    """Payment details recorded on a booking."""

    order_id: str | None = Field(None, description="Gateway order id")
    gateway_txn_id: str | None = Field(None, description="Gateway transaction id, set once paid")
    payment_method: str | None = Field(None, description="Payment method or gateway name")
    paid_at: datetime | None = Field(None, description="Payment time (ISO 8601)")


class Booking(BaseModel):
    """Booking response schema."""

    token: str = Field(..., description="Booking token")
    trip_id: str = Field(..., description="Trip ID")
    customer_name: str = Field(..., description="Passenger name")
    email: str = Field(..., description="Contact email")
    phone: str = Field(..., description="Contact phone")
    seat_ids: list[str] = Field(..., description="Booked seats")
    total_amount: int = Field(..., gt=0, description="Amount charged")
    currency: str = Field(..., description="ISO 4217 currency code")
    status: BookingStatus = Field(..., description="Booking status")
    awaiting_confirmation: bool = Field(..., description="True while payment is being verified")
    payment: PaymentReference = Field(..., description="Payment reference")
    cancel_reason: str | None = Field(None, description="Why the booking was cancelled")
    expires_at: datetime = Field(..., description="When an unpaid booking lapses (ISO 8601)")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last update time (ISO 8601)")


class BookingList(BaseModel):
    """Response schema for booking listings, newest first."""

    items: list[Booking] = Field(..., description="Bookings")


class RevenueStats(BaseModel):
    """Confirmed booking totals."""

    total_revenue: int = Field(..., ge=0, description="Sum of confirmed booking amounts")
    total_bookings: int = Field(..., ge=0, description="Number of confirmed bookings")
