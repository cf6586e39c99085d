"""FastAPI dependencies for database sessions, authentication, and service wiring."""

from typing import Optional

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..services.admin_service import AdminService
from ..services.payment_reconciler import PaymentReconciler
from ..services.reservation_engine import ReservationEngine
from .config import GatewayConfig, settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError

ADMIN_ROLE = "admin"


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format") from None

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        # PyJWT rejects expired tokens when an exp claim is present
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {str(e)}") from e

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    return {
        "user_id": user_id,
        "username": payload.get("username"),
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """
    Authorization dependency for administrative endpoints.

    Raises:
        AuthorizationError: If the token does not carry the admin role
    """
    if ADMIN_ROLE not in user["roles"]:
        raise AuthorizationError(required_permissions=[ADMIN_ROLE])
    return user


def get_reservation_engine(request: Request, db: AsyncSession = Depends(get_db)) -> ReservationEngine:
    state = request.app.state
    return ReservationEngine(
        db,
        notifications=getattr(state, "notifications", None),
        locks=getattr(state, "trip_locks", None),
        hold_ttl_seconds=settings.hold_ttl_seconds,
    )


def get_gateway_config(request: Request) -> GatewayConfig:
    return request.app.state.gateway_config


def get_payment_reconciler(
    request: Request,
    engine: ReservationEngine = Depends(get_reservation_engine),
) -> PaymentReconciler:
    state = request.app.state
    return PaymentReconciler(engine, state.gateway, state.gateway_config)


def get_admin_service(request: Request, db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(db, locks=getattr(request.app.state, "trip_locks", None))
