"""Test configuration and fixtures."""

from datetime import datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from busbooking.core.config import GatewayConfig, settings
from busbooking.core.database import Base, get_db
from busbooking.core.exceptions import GatewayError
from busbooking.models import *  # noqa: F403 - Import all models
from busbooking.schemas.booking import CreateBookingRequest
from busbooking.schemas.trip import CreateTripRequest
from busbooking.services.notification_service import NotificationQueue
from busbooking.services.payment_gateway import (
    ChargeSession,
    ChargeStatus,
    CustomerRef,
    GatewayChargeStatus,
    PaymentGateway,
)
from busbooking.services.payment_reconciler import PaymentReconciler
from busbooking.services.reservation_engine import ReservationEngine
from busbooking.services.seat_ledger import TripLockRegistry
from busbooking.services.trip_service import TripService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_TOKEN_SECRET = "test-bearer-secret-with-enough-bytes-for-hs256"

HOLD_TTL_SECONDS = 900


class FakeClock:
    """Settable clock so expiry can be tested without sleeping."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeGateway(PaymentGateway):
    """In-memory gateway with scripted answers."""

    name = "fake"

    def __init__(self):
        self.statuses: dict[str, ChargeStatus] = {}
        self.opened: list[str] = []
        self.status_calls = 0
        self.fail_open = False
        self.fail_status = False

    async def open_charge(
        self,
        order_id: str,
        amount: int,
        currency: str,
        customer: CustomerRef,
        return_url: str | None = None,
        note: str | None = None,
    ) -> ChargeSession:
        if self.fail_open:
            raise GatewayError("open_charge", "unexpected status 500", status_code=500)
        self.opened.append(order_id)
        self.statuses.setdefault(order_id, ChargeStatus.OPEN)
        return ChargeSession(order_id=order_id, session_ref=f"session_{order_id}")

    async def get_charge_status(self, order_id: str) -> GatewayChargeStatus:
        self.status_calls += 1
        if self.fail_status:
            raise GatewayError("get_charge_status", "transport error: timed out")
        status = self.statuses.get(order_id, ChargeStatus.OPEN)
        return GatewayChargeStatus(
            order_id=order_id,
            status=status,
            gateway_status="ACTIVE" if status == ChargeStatus.OPEN else status.value,
            transaction_id=f"cf_{order_id}" if status == ChargeStatus.PAID else None,
        )


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine, one session per simulated request."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 9, 0, 0))


@pytest.fixture
def locks():
    return TripLockRegistry()


@pytest.fixture
def notifications():
    return NotificationQueue(maxsize=10)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def gateway_config():
    return GatewayConfig(
        app_id="test-app-id",
        secret_key="test-secret-key",
        env="TEST",
        return_url="https://example.test/payment.html?order_id={order_id}&booking_token={booking_token}",
    )


@pytest_asyncio.fixture
async def trip(test_session):
    """A three-seat trip at 500 per seat."""
    return await TripService(test_session).create_trip(
        CreateTripRequest(
            name="Shree Ram Travels AC Sleeper",
            origin="Mumbai",
            destination="Pune",
            departure_time=datetime(2026, 3, 2, 21, 0, 0),
            seat_count=3,
            seat_ids=["A1", "A2", "A3"],
            fare_amount=500,
        )
    )


@pytest.fixture
def make_request():
    """Build a booking request for some seats of a trip."""
    def _make(trip, seat_ids, **overrides) -> CreateBookingRequest:
        data = {
            "trip_id": str(trip.id),
            "customer_name": "Asha Patil",
            "email": "asha@example.com",
            "phone": "9800000001",
            "seat_ids": list(seat_ids),
        }
        data.update(overrides)
        return CreateBookingRequest(**data)

    return _make


@pytest.fixture
def reservation_engine(test_session, notifications, locks, clock):
    return ReservationEngine(
        test_session,
        notifications=notifications,
        locks=locks,
        clock=clock,
        hold_ttl_seconds=HOLD_TTL_SECONDS,
    )


@pytest.fixture
def reconciler(reservation_engine, gateway, gateway_config):
    return PaymentReconciler(reservation_engine, gateway, gateway_config)


@pytest.fixture
def admin_headers(monkeypatch):
    """Bearer header for a user carrying the admin role."""
    monkeypatch.setattr(settings, "bearer_token_secret", TEST_TOKEN_SECRET)
    token = jwt.encode(
        {"sub": "admin-1", "username": "ops", "roles": ["admin"]},
        TEST_TOKEN_SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(monkeypatch):
    """Bearer header for an authenticated user without the admin role."""
    monkeypatch.setattr(settings, "bearer_token_secret", TEST_TOKEN_SECRET)
    token = jwt.encode({"sub": "user-7", "roles": []}, TEST_TOKEN_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, gateway, gateway_config, notifications, locks):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from busbooking.core.exceptions import ProblemDetailsException, generic_exception_handler, problem_details_handler
    from busbooking.routers import admin, booking, health, metrics, payment, trip

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Bus Booking API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Simplified for tests
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "bus-booking-api",
            "version": "1.0.0",
            "environment": "test",
            "debug": True,
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "bus-booking-api",
            "checks": {
                "database": "ok",
                "workers": "ok",
            },
        }

    @app.get("/info")
    async def service_info():
        return {
            "service": "bus-booking-api",
            "version": "1.0.0",
            "description": "Bus seat reservation and payment reconciliation service",
            "environment": "test",
            "debug": True,
            "features": {
                "authentication": True,
                "seat_holds": True,
                "payment_reconciliation": True,
                "problem_details": True,
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(trip.router)
    app.include_router(booking.router)
    app.include_router(payment.router)
    app.include_router(admin.router)
    app.include_router(metrics.router)

    # Collaborators normally built by the lifespan
    app.state.gateway = gateway
    app.state.gateway_config = gateway_config
    app.state.notifications = notifications
    app.state.trip_locks = locks

    # Override database dependency: a fresh session per request
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_trip_data():
    """Sample trip data for testing."""
    return {
        "name": "Shree Ram Travels Volvo",
        "origin": "Pune",
        "destination": "Goa",
        "departure_time": "2026-12-15T21:00:00Z",
        "seat_count": 4,
        "seat_ids": ["L1", "L2", "U1", "U2"],
        "fare_amount": 1200,
    }


@pytest.fixture
def sample_booking_data():
    """Sample booking data for testing, without the trip id."""
    return {
        "customer_name": "Rahul Deshmukh",
        "email": "Rahul@Example.com",
        "phone": "9800000002",
        "seat_ids": ["L1", "L2"],
    }
