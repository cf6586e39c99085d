"""Payment router: gateway callbacks, client polls and checkout configuration."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.config import GatewayConfig
from ..core.dependencies import get_gateway_config, get_payment_reconciler
from ..schemas.common import Problem
from ..schemas.payment import (
    GatewayPublicConfig,
    PaymentStatusRequest,
    PaymentStatusResponse,
    ReconcileRequest,
    ReconcileResponse,
)
from ..services.payment_reconciler import PaymentReconciler
from .booking import convert_booking_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])

# Define dependencies to avoid B008 linting errors
RECONCILER_DEPENDENCY = Depends(get_payment_reconciler)
GATEWAY_CONFIG_DEPENDENCY = Depends(get_gateway_config)


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    responses={404: {"model": Problem}, 409: {"model": Problem}, 503: {"model": Problem}},
)
async def reconcile_payment(
    request: ReconcileRequest,
    reconciler: PaymentReconciler = RECONCILER_DEPENDENCY,
) -> JSONResponse:
    """
    Resolve an order against the payment gateway.

    Safe to call repeatedly for the same order. When the gateway cannot be
    reached the booking stays pending and a retryable 503 is returned.
    """
    result = await reconciler.reconcile(request.order_id)

    response_data = ReconcileResponse(
        order_id=result.order_id,
        outcome=result.outcome,
        gateway_status=result.gateway_status,
        booking=convert_booking_to_schema(result.booking),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/status", response_model=PaymentStatusResponse, responses={404: {"model": Problem}})
async def payment_status(
    request: PaymentStatusRequest,
    reconciler: PaymentReconciler = RECONCILER_DEPENDENCY,
) -> JSONResponse:
    """Local booking status for an order, without asking the gateway."""
    booking = await reconciler.payment_status(request.order_id)
    schema = convert_booking_to_schema(booking)

    response_data = PaymentStatusResponse(
        order_id=request.order_id,
        booking_token=booking.token,
        status=booking.status,
        amount=booking.total_amount,
        payment=schema.payment,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/config", response_model=GatewayPublicConfig)
async def gateway_config(config: GatewayConfig = GATEWAY_CONFIG_DEPENDENCY) -> JSONResponse:
    """Non-secret gateway settings for the checkout page."""
    response_data = GatewayPublicConfig(app_id=config.app_id, env=config.env, mode=config.mode)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
