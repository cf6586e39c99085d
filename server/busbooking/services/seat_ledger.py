"""Seat ledger: per-trip arbitration of seat holds and committed seats."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncIterator
from uuid import UUID, uuid4

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utcnow
from ..core.exceptions import HoldNotFoundError
from ..models.ledger import ClaimState, HoldStatus, SeatClaim, SeatHold

logger = logging.getLogger(__name__)


class _TripLock:
    """asyncio lock that the owning task may re-enter."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._depth = 0

    async def __aenter__(self):
        task = asyncio.current_task()
        if self._owner is task:
            self._depth += 1
            return self
        await self._lock.acquire()
        self._owner = task
        self._depth = 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()


class TripLockRegistry:
    """Process-wide registry of per-trip locks, so unrelated trips never contend."""

    def __init__(self):
        self._locks: dict[str, _TripLock] = {}

    def lock_for(self, trip_id: UUID | str) -> _TripLock:
        key = str(trip_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = _TripLock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# One registry per process; every SeatLedger shares it unless given another
trip_locks = TripLockRegistry()


@dataclass
class HoldResult:
    """Outcome of try_hold: a hold id on success, otherwise the conflicting seats."""

    hold_id: UUID | None = None
    expires_at: datetime | None = None
    conflicts: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.hold_id is not None


class SeatLedger:
    """
    Authoritative record of held and committed seats.

    Mutations are flushed, not committed: the caller commits, normally while
    still inside critical_section() so the per-trip lock covers the whole
    unit of work.
    """

    def __init__(self, db: AsyncSession, locks: TripLockRegistry | None = None, clock: Clock = utcnow):
        self.db = db
        self.locks = locks if locks is not None else trip_locks
        self.clock = clock

    @asynccontextmanager
    async def critical_section(self, trip_id: UUID) -> AsyncIterator[None]:
        """
        Serialise work on one trip.

        Takes the in-process lock for the trip and, on PostgreSQL, a
        transaction-scoped advisory lock so other worker processes wait too.
        The advisory lock is released when the caller's transaction ends.
        """
        async with self.locks.lock_for(trip_id):
            # Skip advisory locks for SQLite (used in tests)
            if self.db.bind and "postgresql" in str(self.db.bind.dialect.name):
                await self.db.execute(
                    text("SELECT pg_advisory_xact_lock(hashtext(:trip_id))"),
                    {"trip_id": str(trip_id)}
                )
            yield

    async def try_hold(self, trip_id: UUID, seat_ids: list[str], ttl_seconds: int) -> HoldResult:
        """
        Hold every requested seat or none of them.

        Seats committed to a booking or claimed by a live hold conflict. A
        claim whose hold has passed its expiry is reclaimed on the spot.

        Args:
            trip_id: Trip the seats belong to
            seat_ids: Seats to hold
            ttl_seconds: Lifetime of the new hold

        Returns:
            HoldResult with the new hold id, or the conflicting seats in request order
        """
        async with self.critical_section(trip_id):
            now = self.clock()

            stmt = (
                select(SeatClaim, SeatHold)
                .join(SeatHold, SeatClaim.hold_id == SeatHold.id)
                .where(SeatClaim.trip_id == trip_id, SeatClaim.seat_id.in_(seat_ids))
            )
            result = await self.db.execute(stmt)

            taken: set[str] = set()
            stale_holds: dict[UUID, SeatHold] = {}
            for claim, hold in result.all():
                if claim.state == ClaimState.HELD.value and hold.expires_at <= now:
                    stale_holds[hold.id] = hold
                else:
                    taken.add(claim.seat_id)

            for hold in stale_holds.values():
                await self._drop_hold(hold, HoldStatus.EXPIRED)

            conflicts = [seat for seat in seat_ids if seat in taken]
            if conflicts:
                logger.info(
                    "Seat hold rejected",
                    extra={"trip_id": str(trip_id), "conflicts": conflicts}
                )
                return HoldResult(conflicts=conflicts)

            expires_at = now + timedelta(seconds=ttl_seconds)
            hold = SeatHold(id=uuid4(), trip_id=trip_id, status=HoldStatus.ACTIVE.value, expires_at=expires_at)
            self.db.add(hold)
            self.db.add_all([
                SeatClaim(trip_id=trip_id, seat_id=seat, hold_id=hold.id, state=ClaimState.HELD.value)
                for seat in seat_ids
            ])

            try:
                await self.db.flush()
            except IntegrityError:
                # Another process claimed one of the seats between our read and write
                await self.db.rollback()
                conflicts = await self._claimed_among(trip_id, seat_ids)
                logger.warning(
                    "Seat hold lost a race on the unique seat claim",
                    extra={"trip_id": str(trip_id), "conflicts": conflicts}
                )
                return HoldResult(conflicts=conflicts or list(seat_ids))

            logger.info(
                "Seats held",
                extra={
                    "trip_id": str(trip_id),
                    "hold_id": str(hold.id),
                    "seat_ids": list(seat_ids),
                    "expires_at": expires_at.isoformat(),
                    "reclaimed_holds": len(stale_holds),
                }
            )
            return HoldResult(hold_id=hold.id, expires_at=expires_at)

    async def commit(self, hold_id: UUID) -> SeatHold:
        """
        Turn an active hold into committed seats.

        Raises:
            HoldNotFoundError: If the hold is unknown, expired, released or already committed
        """
        hold = await self.db.get(SeatHold, hold_id)
        if hold is None:
            raise HoldNotFoundError(str(hold_id))

        async with self.critical_section(hold.trip_id):
            await self.db.refresh(hold)
            if hold.status != HoldStatus.ACTIVE.value or hold.expires_at <= self.clock():
                logger.warning(
                    "Cannot commit seat hold",
                    extra={"hold_id": str(hold_id), "hold_status": hold.status}
                )
                raise HoldNotFoundError(str(hold_id))

            await self.db.execute(
                update(SeatClaim)
                .where(SeatClaim.hold_id == hold.id)
                .values(state=ClaimState.COMMITTED.value)
            )
            hold.status = HoldStatus.COMMITTED.value
            await self.db.flush()

        logger.info(
            "Seat hold committed",
            extra={"hold_id": str(hold_id), "trip_id": str(hold.trip_id)}
        )
        return hold

    async def release(self, hold_id: UUID) -> bool:
        """
        Discard a hold without committing it.

        Releasing an unknown, released, expired or committed hold is a no-op.

        Returns:
            True if seats were freed
        """
        hold = await self.db.get(SeatHold, hold_id)
        if hold is None:
            return False

        async with self.critical_section(hold.trip_id):
            await self.db.refresh(hold)
            if hold.status != HoldStatus.ACTIVE.value:
                logger.debug(
                    "Seat hold already settled",
                    extra={"hold_id": str(hold_id), "hold_status": hold.status}
                )
                return False

            await self._drop_hold(hold, HoldStatus.RELEASED)

        logger.info(
            "Seat hold released",
            extra={"hold_id": str(hold_id), "trip_id": str(hold.trip_id)}
        )
        return True

    async def committed_seats(self, trip_id: UUID) -> set[str]:
        stmt = select(SeatClaim.seat_id).where(
            SeatClaim.trip_id == trip_id,
            SeatClaim.state == ClaimState.COMMITTED.value,
        )
        result = await self.db.execute(stmt)
        return set(result.scalars())

    async def unavailable_seats(self, trip_id: UUID) -> set[str]:
        """Committed seats plus seats under a hold that has not expired."""
        stmt = (
            select(SeatClaim.seat_id, SeatClaim.state, SeatHold.expires_at)
            .join(SeatHold, SeatClaim.hold_id == SeatHold.id)
            .where(SeatClaim.trip_id == trip_id)
        )
        result = await self.db.execute(stmt)
        now = self.clock()
        return {
            seat_id
            for seat_id, state, expires_at in result.all()
            if state == ClaimState.COMMITTED.value or expires_at > now
        }

    async def clear_trip(self, trip_id: UUID) -> int:
        """Delete every hold and claim of a trip. Returns the number of holds removed."""
        async with self.critical_section(trip_id):
            await self.db.execute(delete(SeatClaim).where(SeatClaim.trip_id == trip_id))
            result = await self.db.execute(delete(SeatHold).where(SeatHold.trip_id == trip_id))
            await self.db.flush()

        logger.warning(
            "Seat ledger cleared",
            extra={"trip_id": str(trip_id), "holds_removed": result.rowcount}
        )
        return result.rowcount

    async def _drop_hold(self, hold: SeatHold, status: HoldStatus) -> None:
        await self.db.execute(delete(SeatClaim).where(SeatClaim.hold_id == hold.id))
        hold.status = status.value
        await self.db.flush()

    async def _claimed_among(self, trip_id: UUID, seat_ids: list[str]) -> list[str]:
        stmt = select(SeatClaim.seat_id).where(
            SeatClaim.trip_id == trip_id,
            SeatClaim.seat_id.in_(seat_ids),
        )
        result = await self.db.execute(stmt)
        claimed = set(result.scalars())
        return [seat for seat in seat_ids if seat in claimed]
