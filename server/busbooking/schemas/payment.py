"""Payment-related Pydantic schemas."""

from enum import Enum

from pydantic import BaseModel, Field

from .booking import Booking, PaymentReference


class ReconcileOutcome(str, Enum):
    """What a reconciliation did to the booking."""
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class ChargeHandle(BaseModel):
    """Reference the client uses to complete payment with the gateway."""

    order_id: str = Field(..., description="Gateway order id")
    booking_token: str = Field(..., description="Booking token")
    payment_session_id: str = Field(..., description="Gateway checkout session reference")
    amount: int = Field(..., gt=0, description="Amount to pay")
    currency: str = Field(..., description="ISO 4217 currency code")
    env: str = Field(..., description="Gateway environment (TEST or PROD)")


class CreateBookingResponse(BaseModel):
    """Response schema for booking creation."""

    booking: Booking = Field(..., description="The pending booking")
    charge: ChargeHandle = Field(..., description="Charge to complete")


class ReconcileRequest(BaseModel):
    """Gateway callback or client poll for an order."""

    order_id: str = Field(..., min_length=1, description="Gateway order id")


class ReconcileResponse(BaseModel):
    """Result of reconciling an order with the gateway."""

    order_id: str = Field(..., description="Gateway order id")
    outcome: ReconcileOutcome = Field(..., description="Resulting booking outcome")
    gateway_status: str | None = Field(None, description="Status reported by the gateway, if asked")
    booking: Booking = Field(..., description="Booking after reconciliation")


class PaymentStatusRequest(BaseModel):
    """Request schema for the local payment status view."""

    order_id: str = Field(..., min_length=1, description="Gateway order id")


class PaymentStatusResponse(BaseModel):
    """Local view of a booking by gateway order id."""

    order_id: str = Field(..., description="Gateway order id")
    booking_token: str = Field(..., description="Booking token")
    status: str = Field(..., description="Booking status")
    amount: int = Field(..., description="Booking amount")
    payment: PaymentReference = Field(..., description="Payment reference")


class GatewayPublicConfig(BaseModel):
    """Non-secret gateway settings for the checkout page."""

    app_id: str = Field(..., description="Gateway client id")
    env: str = Field(..., description="TEST or PROD")
    mode: str = Field(..., description="test or production")
