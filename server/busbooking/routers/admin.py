"""Administrative router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import get_admin_service, require_admin
from ..schemas.admin import ResetRequest, ResetResponse
from ..schemas.common import Problem
from ..services.admin_service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])

# Define dependencies to avoid B008 linting errors
ADMIN_SERVICE_DEPENDENCY = Depends(get_admin_service)
ADMIN_DEPENDENCY = Depends(require_admin)


@router.post("/reset", response_model=ResetResponse, responses={403: {"model": Problem}})
async def reset_bookings(
    request: ResetRequest,
    admin_service: AdminService = ADMIN_SERVICE_DEPENDENCY,
    user: dict = ADMIN_DEPENDENCY,
) -> JSONResponse:
    """
    Delete bookings and empty the seat ledger for one trip or every trip.

    Requires the admin role and a deployment with resets switched on.
    Never available in production.
    """
    admin_service.ensure_reset_allowed()
    admin_service.require_confirmation(request.confirm)

    if request.trip_id:
        deleted = await admin_service.reset_trip(request.trip_id)
        cleared = 1
    else:
        deleted, cleared = await admin_service.reset_all()

    logger.warning(
        "Administrative reset performed",
        extra={
            "user_id": user["user_id"],
            "trip_id": request.trip_id,
            "deleted_bookings": deleted,
            "cleared_trips": cleared,
        }
    )

    response_data = ResetResponse(deleted_bookings=deleted, cleared_trips=cleared)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
