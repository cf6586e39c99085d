"""Background worker that cancels pending bookings whose hold window has passed."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.clock import Clock, utcnow
from ..core.database import async_session_factory
from ..services.reservation_engine import ReservationEngine
from ..services.seat_ledger import TripLockRegistry
from .base import BaseWorker

logger = logging.getLogger(__name__)


class BookingExpiryWorker(BaseWorker):
    """
    Background worker that expires abandoned pending bookings.

    Complements the lazy check done whenever a booking is read, so seats
    held by unpaid bookings come back even if nobody touches them.
    """

    def __init__(
        self,
        interval_seconds: float = 60,
        batch_size: int = 100,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: TripLockRegistry | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the booking expiry worker.

        Args:
            interval_seconds: How often to sweep (default: 60s)
            batch_size: Maximum bookings expired per sweep
            session_factory: Session factory, the application's by default
            locks: Per-trip lock registry shared with request handlers
            clock: Source of the current time
        """
        super().__init__(name="BookingExpiry", interval_seconds=interval_seconds)
        self.batch_size = batch_size
        self.session_factory = session_factory or async_session_factory
        self.locks = locks
        self.clock = clock

    async def process(self) -> None:
        """Expire one batch of stale bookings."""
        async with self.session_factory() as db:
            engine = ReservationEngine(db, locks=self.locks, clock=self.clock)
            expired_count = await engine.expire_stale(self.batch_size)

            if expired_count > 0:
                logger.info(
                    f"Expired {expired_count} bookings",
                    extra={
                        "expired_count": expired_count,
                        "worker": self.name,
                    }
                )
