"""Administrative operations: data reset and revenue statistics."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import AuthorizationError, ValidationError
from .booking_store import BookingStore
from .seat_ledger import SeatLedger, TripLockRegistry
from .trip_service import TripService

logger = logging.getLogger(__name__)


class AdminService:
    """Privileged operations. Callers must have checked the admin role."""

    def __init__(self, db: AsyncSession, locks: TripLockRegistry | None = None, settings: Settings | None = None):
        self.db = db
        self.settings = settings or default_settings
        self.trips = TripService(db)
        self.ledger = SeatLedger(db, locks=locks)
        self.store = BookingStore(db)

    def ensure_reset_allowed(self) -> None:
        """
        Refuse resets in production or when they are not switched on.

        Raises:
            AuthorizationError: If resets are disabled for this deployment
        """
        if self.settings.is_production:
            raise AuthorizationError(detail="Data reset is not available in production")
        if not self.settings.admin_reset_enabled:
            raise AuthorizationError(detail="Data reset is disabled for this deployment")

    async def reset_trip(self, trip_id: UUID | str) -> int:
        """
        Delete every booking of a trip and empty its seat ledger.

        Returns:
            Number of bookings deleted
        """
        self.ensure_reset_allowed()
        trip = await self.trips.get_trip(trip_id)
        trip_uuid = trip.id

        async with self.ledger.critical_section(trip_uuid):
            try:
                deleted = await self.store.delete_for_trip(trip_uuid)
                await self.ledger.clear_trip(trip_uuid)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.warning(
            "Trip bookings reset",
            extra={"trip_id": str(trip_uuid), "deleted_bookings": deleted}
        )
        return deleted

    async def reset_all(self) -> tuple[int, int]:
        """
        Reset every trip.

        Returns:
            (bookings deleted, trips cleared)
        """
        self.ensure_reset_allowed()
        trip_ids = await self.trips.list_trip_ids()

        deleted = 0
        for trip_id in trip_ids:
            deleted += await self.reset_trip(trip_id)

        return deleted, len(trip_ids)

    async def revenue_stats(self) -> dict[str, int]:
        total, count = await self.store.confirmed_totals()
        return {"total_revenue": total, "total_bookings": count}

    @staticmethod
    def require_confirmation(confirm: bool) -> None:
        if not confirm:
            raise ValidationError(detail="Reset must be confirmed", errors={"confirm": "must be true"})
