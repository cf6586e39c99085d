"""Domain exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .clock import utcnow

logger = logging.getLogger(__name__)


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        code: Optional[str] = None,
        retryable: bool = False,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            code: Application-specific error code
            retryable: Whether the caller may retry the same request
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.code = code
        self.retryable = retryable
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "retryable": retryable,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        if code:
            self.problem_details["code"] = code

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Malformed input. Never retried."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            code="VALIDATION_ERROR",
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            code="UNAUTHENTICATED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_permissions:
            extensions["required_permissions"] = required_permissions

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri="https://example.com/problems/access-forbidden",
            instance=instance,
            code="FORBIDDEN",
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Unknown trip, booking or order. Never retried."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            code="NOT_FOUND",
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Optimistic concurrency collision on a booking record."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri="https://example.com/problems/resource-conflict",
            instance=instance,
            code="CONFLICT",
            retryable=True,
            extensions=extensions,
        )


# Business logic exceptions

class SeatsUnavailableError(ProblemDetailsException):
    """Requested seats are committed or held by someone else."""

    def __init__(self, trip_id: str, unavailable_seats: list[str]):
        self.unavailable_seats = list(unavailable_seats)
        super().__init__(
            status_code=409,
            title="Seats Unavailable",
            detail=f"Some seats are no longer available: {', '.join(self.unavailable_seats)}",
            type_uri="https://example.com/problems/seats-unavailable",
            code="SEATS_UNAVAILABLE",
            extensions={
                "trip_id": trip_id,
                "unavailable_seats": self.unavailable_seats,
            },
        )


class HoldNotFoundError(ProblemDetailsException):
    """Hold already released, committed or reclaimed."""

    def __init__(self, hold_id: str):
        self.hold_id = hold_id
        super().__init__(
            status_code=409,
            title="Hold Not Found",
            detail=f"Seat hold {hold_id} is no longer active",
            type_uri="https://example.com/problems/hold-not-found",
            code="HOLD_NOT_FOUND",
            extensions={"hold_id": hold_id},
        )


class AlreadyCancelledError(ProblemDetailsException):
    """Payment or confirmation arrived for a booking that is already cancelled."""

    def __init__(self, booking_token: str, reason: Optional[str] = None):
        self.booking_token = booking_token
        detail = f"Booking {booking_token} is already cancelled"
        if reason:
            detail += f" ({reason})"
        super().__init__(
            status_code=409,
            title="Booking Already Cancelled",
            detail=detail,
            type_uri="https://example.com/problems/booking-already-cancelled",
            code="ALREADY_CANCELLED",
            extensions={"booking_token": booking_token, "cancel_reason": reason},
        )


class BookingAlreadyConfirmedError(ProblemDetailsException):
    """Paid bookings cannot be cancelled through the reservation flow."""

    def __init__(self, booking_token: str):
        super().__init__(
            status_code=409,
            title="Booking Already Confirmed",
            detail=f"Booking {booking_token} is confirmed and cannot be cancelled without a refund",
            type_uri="https://example.com/problems/booking-already-confirmed",
            code="ALREADY_CONFIRMED",
            extensions={"booking_token": booking_token},
        )


class GatewayError(Exception):
    """Transport failure or non-success reply from the payment gateway."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.status_code = status_code
        self.body = body


class ChargeCreationFailedError(ProblemDetailsException):
    """Gateway refused to open a charge; the pending booking was rolled back."""

    def __init__(self, booking_token: str, detail: Optional[str] = None):
        super().__init__(
            status_code=502,
            title="Charge Creation Failed",
            detail=detail or "Payment gateway error. Please try again.",
            type_uri="https://example.com/problems/charge-creation-failed",
            code="CHARGE_CREATION_FAILED",
            retryable=True,
            extensions={"booking_token": booking_token},
        )


class VerificationUnavailableError(ProblemDetailsException):
    """Gateway could not be asked; the booking keeps its current state."""

    def __init__(self, order_id: str, detail: Optional[str] = None, booking_status: str = "PENDING"):
        super().__init__(
            status_code=503,
            title="Payment Verification Unavailable",
            detail=detail or "Could not verify payment. The booking is awaiting confirmation; try again.",
            type_uri="https://example.com/problems/verification-unavailable",
            code="VERIFICATION_UNAVAILABLE",
            retryable=True,
            extensions={"order_id": order_id, "booking_status": booking_status},
            headers={"Retry-After": "5"},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path},
    )

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
