"""Booking router for reservation operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import (
    get_admin_service,
    get_payment_reconciler,
    get_reservation_engine,
    require_admin,
)
from ..models.booking import BookingStatus as BookingStatusModel
from ..schemas.booking import (
    Booking,
    BookingList,
    CancelBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
    PaymentReference,
    RevenueStats,
)
from ..schemas.common import Problem
from ..schemas.payment import ChargeHandle, CreateBookingResponse
from ..services.admin_service import AdminService
from ..services.payment_reconciler import PaymentReconciler
from ..services.reservation_engine import ReservationEngine
from ..services.trip_service import parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
ENGINE_DEPENDENCY = Depends(get_reservation_engine)
RECONCILER_DEPENDENCY = Depends(get_payment_reconciler)
ADMIN_SERVICE_DEPENDENCY = Depends(get_admin_service)
ADMIN_DEPENDENCY = Depends(require_admin)


def convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema. The seat hold stays internal."""
    return Booking(
        token=booking_model.token,
        trip_id=str(booking_model.trip_id),
        customer_name=booking_model.customer_name,
        email=booking_model.email,
        phone=booking_model.phone,
        seat_ids=list(booking_model.seat_ids),
        total_amount=booking_model.total_amount,
        currency=booking_model.currency,
        status=booking_model.status,
        awaiting_confirmation=(
            booking_model.status == BookingStatusModel.PENDING.value and booking_model.order_id is not None
        ),
        payment=PaymentReference(
            order_id=booking_model.order_id,
            gateway_txn_id=booking_model.gateway_txn_id,
            payment_method=booking_model.payment_method,
            paid_at=booking_model.paid_at,
        ),
        cancel_reason=booking_model.cancel_reason,
        expires_at=booking_model.expires_at,
        created_at=booking_model.created_at,
        updated_at=booking_model.updated_at,
    )


@router.post(
    "/create",
    response_model=CreateBookingResponse,
    responses={409: {"model": Problem}, 502: {"model": Problem}},
)
async def create_booking(
    request: CreateBookingRequest,
    reconciler: PaymentReconciler = RECONCILER_DEPENDENCY,
) -> JSONResponse:
    """
    Reserve seats and open a charge for them.

    Conflicting seats are reported in the problem's unavailable_seats. If
    the gateway refuses the charge, the booking is cancelled and its seats
    are freed before the error is returned.
    """
    booking = await reconciler.engine.create_booking(request)
    charge = await reconciler.initiate(booking)
    booking = await reconciler.engine.store.get_by_token(booking.token)

    response_data = CreateBookingResponse(
        booking=convert_booking_to_schema(booking),
        charge=ChargeHandle(
            order_id=charge.order_id,
            booking_token=charge.booking_token,
            payment_session_id=charge.session_ref,
            amount=charge.amount,
            currency=charge.currency,
            env=charge.env,
        ),
    )

    logger.info(
        "Booking created with charge",
        extra={
            "booking_token": booking.token,
            "order_id": charge.order_id,
            "seat_ids": booking.seat_ids,
        }
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    engine: ReservationEngine = ENGINE_DEPENDENCY,
) -> JSONResponse:
    """Get a booking by token. An unpaid booking past its hold is reported cancelled."""
    booking = await engine.get_booking(request.booking_token)
    return JSONResponse(status_code=200, content=convert_booking_to_schema(booking).model_dump(mode="json"))


@router.post("/cancel", response_model=Booking, responses={409: {"model": Problem}})
async def cancel_booking(
    request: CancelBookingRequest,
    engine: ReservationEngine = ENGINE_DEPENDENCY,
) -> JSONResponse:
    """
    Cancel a pending booking and free its seats.

    Cancelling twice returns the cancelled booking. Confirmed bookings
    cannot be cancelled here.
    """
    booking = await engine.cancel(request.booking_token, request.reason.value)
    return JSONResponse(status_code=200, content=convert_booking_to_schema(booking).model_dump(mode="json"))


@router.post("/list", response_model=BookingList)
async def list_bookings(
    request: ListBookingsRequest,
    engine: ReservationEngine = ENGINE_DEPENDENCY,
    user: dict = ADMIN_DEPENDENCY,
) -> JSONResponse:
    """List bookings, newest first. Requires the admin role."""
    trip_id = parse_uuid(request.trip_id, "trip") if request.trip_id else None
    bookings = await engine.store.list_recent(limit=request.limit, offset=request.offset, trip_id=trip_id)
    response_data = BookingList(items=[convert_booking_to_schema(booking) for booking in bookings])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/stats", response_model=RevenueStats)
async def revenue_stats(
    admin_service: AdminService = ADMIN_SERVICE_DEPENDENCY,
    user: dict = ADMIN_DEPENDENCY,
) -> JSONResponse:
    """Revenue and count of confirmed bookings. Requires the admin role."""
    stats = await admin_service.revenue_stats()
    return JSONResponse(status_code=200, content=RevenueStats(**stats).model_dump(mode="json"))
