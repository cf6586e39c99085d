"""Booking store: durable keyed storage for bookings with an optimistic status check."""

import logging
import secrets
import string
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import ConflictError
from ..models.booking import Booking, BookingStatus, BookingTransition

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Render a non-negative integer in upper-case base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def generate_booking_token(now: datetime | None = None) -> str:
    """Generate a booking token such as TKT-LZ4K2M1QX7B9."""
    now = now or utcnow()
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"TKT-{to_base36(millis)}{random_base36(4)}"


class BookingStore:
    """
    Keyed storage for bookings.

    No business rules live here. Writes are flushed and left for the caller
    to commit; update() is the only way to change a stored booking and it
    fails with ConflictError when the record moved on underneath the caller.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking and record its initial transition."""
        if not booking.token:
            booking.token = await self._unique_token()

        self.db.add(booking)
        await self.db.flush()
        self.db.add(BookingTransition(
            booking_id=booking.id,
            from_status=None,
            to_status=booking.status,
            reason="created",
        ))
        await self.db.flush()
        return booking

    async def get_by_token(self, token: str) -> Booking | None:
        stmt = select(Booking).where(Booking.token == token).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_order_id(self, order_id: str) -> Booking | None:
        stmt = select(Booking).where(Booking.order_id == order_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_trip(self, trip_id: UUID) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.trip_id == trip_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_recent(self, limit: int = 50, offset: int = 0, trip_id: UUID | None = None) -> list[Booking]:
        """List bookings newest first; ties on creation time break on id."""
        stmt = select(Booking)
        if trip_id is not None:
            stmt = stmt.where(Booking.trip_id == trip_id)
        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_expired_pending(self, now: datetime, limit: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING.value, Booking.expires_at <= now)
            .order_by(Booking.expires_at)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def update(
        self,
        booking: Booking,
        expected_status: BookingStatus,
        reason: str | None = None,
        **changes,
    ) -> Booking:
        """
        Apply changes only if the stored booking is still as the caller last saw it.

        The row must still carry expected_status and the version the caller
        loaded. A status change appends a transition record in the same
        transaction.

        Args:
            booking: Booking as loaded by the caller
            expected_status: Status the caller believes is stored
            reason: Why the status changes, for the transition log
            **changes: Column values to set

        Returns:
            The refreshed booking

        Raises:
            ConflictError: If the stored status or version no longer matches
        """
        values = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in changes.items()
        }
        values["version"] = booking.version + 1
        values["updated_at"] = utcnow()

        stmt = (
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.status == expected_status.value,
                Booking.version == booking.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            logger.warning(
                "Booking changed concurrently",
                extra={
                    "booking_token": booking.token,
                    "expected_status": expected_status.value,
                    "expected_version": booking.version,
                }
            )
            raise ConflictError(
                detail=f"Booking {booking.token} was modified concurrently",
                conflicting_resource={"booking_token": booking.token},
            )

        new_status = values.get("status", expected_status.value)
        if new_status != expected_status.value:
            self.db.add(BookingTransition(
                booking_id=booking.id,
                from_status=expected_status.value,
                to_status=new_status,
                reason=reason,
            ))

        await self.db.flush()
        await self.db.refresh(booking)
        return booking

    async def delete_for_trip(self, trip_id: UUID) -> int:
        """Delete every booking of a trip and its transition log. Returns bookings deleted."""
        booking_ids = select(Booking.id).where(Booking.trip_id == trip_id).scalar_subquery()
        await self.db.execute(
            delete(BookingTransition)
            .where(BookingTransition.booking_id.in_(booking_ids))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            delete(Booking)
            .where(Booking.trip_id == trip_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount

    async def confirmed_totals(self) -> tuple[int, int]:
        """Return (sum of amounts, count) over confirmed bookings."""
        stmt = select(
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.count(Booking.id),
        ).where(Booking.status == BookingStatus.CONFIRMED.value)
        result = await self.db.execute(stmt)
        total, count = result.one()
        return int(total), int(count)

    async def transitions(self, booking: Booking) -> list[BookingTransition]:
        stmt = (
            select(BookingTransition)
            .where(BookingTransition.booking_id == booking.id)
            .order_by(BookingTransition.created_at, BookingTransition.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def _unique_token(self) -> str:
        token = generate_booking_token()
        while await self.get_by_token(token):
            token = generate_booking_token()
        return token
