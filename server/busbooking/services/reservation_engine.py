"""Reservation engine: lifecycle of one booking from seat hold to confirmation or release."""

import logging
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.exceptions import (
    AlreadyCancelledError,
    BookingAlreadyConfirmedError,
    ConflictError,
    NotFoundError,
    SeatsUnavailableError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..schemas.booking import CreateBookingRequest
from .booking_store import BookingStore
from .notification_service import NotificationQueue
from .seat_ledger import SeatLedger, TripLockRegistry
from .trip_service import TripService

logger = logging.getLogger(__name__)

EXPIRED = "expired"


class ReservationEngine:
    """
    Orchestrates bookings: the only writer of new bookings and the only
    caller of seat ledger hold, commit and release.

    Every write for a trip runs inside the ledger's per-trip critical section
    and is committed before the section is left. Optimistic conflicts on a
    booking are retried once after a reload, then surfaced.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationQueue | None = None,
        locks: TripLockRegistry | None = None,
        clock: Clock = utcnow,
        hold_ttl_seconds: int | None = None,
    ):
        self.db = db
        self.clock = clock
        self.hold_ttl_seconds = hold_ttl_seconds or settings.hold_ttl_seconds
        self.notifications = notifications
        self.trips = TripService(db)
        self.ledger = SeatLedger(db, locks=locks, clock=clock)
        self.store = BookingStore(db)

    async def create_booking(self, request: CreateBookingRequest) -> Booking:
        """
        Hold the requested seats and record a pending booking.

        Args:
            request: Booking creation request

        Returns:
            Pending booking guarding its seats with a hold

        Raises:
            NotFoundError: If the trip does not exist
            ValidationError: If seats repeat or are not part of the trip
            SeatsUnavailableError: If any seat is held or booked; nothing is stored
        """
        trip = await self.trips.get_trip(request.trip_id)
        trip_id = trip.id
        seat_ids = list(request.seat_ids)

        duplicates = sorted({seat for seat in seat_ids if seat_ids.count(seat) > 1})
        if duplicates:
            raise ValidationError(
                detail="Seat ids must not repeat",
                errors={"seat_ids": duplicates},
            )

        valid_seats = set(trip.seat_ids)
        invalid = [seat for seat in seat_ids if seat not in valid_seats]
        if invalid:
            raise ValidationError(
                detail=f"Seats are not part of trip {trip_id}: {', '.join(invalid)}",
                errors={"seat_ids": invalid},
            )

        total_amount = trip.fare_amount * len(seat_ids)
        if request.total_amount is not None and request.total_amount != total_amount:
            logger.warning(
                "Client total ignored",
                extra={
                    "trip_id": str(trip_id),
                    "client_total": request.total_amount,
                    "total_amount": total_amount,
                }
            )

        booking = None
        async with self.ledger.critical_section(trip_id):
            try:
                hold = await self.ledger.try_hold(trip_id, seat_ids, self.hold_ttl_seconds)
                if hold.ok:
                    booking = Booking(
                        trip_id=trip_id,
                        customer_name=request.customer_name,
                        email=request.email,
                        phone=request.phone,
                        seat_ids=seat_ids,
                        total_amount=total_amount,
                        currency=trip.currency,
                        status=BookingStatus.PENDING.value,
                        version=1,
                        hold_id=hold.hold_id,
                        expires_at=hold.expires_at,
                    )
                    await self.store.add(booking)
                # Also persists any stale holds reclaimed by try_hold
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        if booking is None:
            metrics_collector.record_seat_conflict()
            raise SeatsUnavailableError(trip_id=str(trip_id), unavailable_seats=hold.conflicts)

        metrics_collector.record_booking_created()
        logger.info(
            "Booking created",
            extra={
                "booking_token": booking.token,
                "trip_id": str(trip_id),
                "seat_ids": seat_ids,
                "total_amount": total_amount,
                "expires_at": booking.expires_at.isoformat(),
            }
        )
        return booking

    async def confirm(self, token: str, gateway_txn_id: str, payment_method: str | None = None) -> Booking:
        """
        Commit the booking's seats after payment.

        A booking that is already confirmed is returned unchanged. A pending
        booking past its expiry is cancelled first and reported as cancelled.

        Raises:
            NotFoundError: If the booking does not exist
            AlreadyCancelledError: If the booking was cancelled or has expired
            HoldNotFoundError: If the seat hold is gone
            ConflictError: If the booking kept changing underneath
        """
        async def transition(booking: Booking) -> Booking:
            return await self._confirm_loaded(booking, gateway_txn_id, payment_method)

        return await self._retrying(token, transition)

    async def cancel(self, token: str, reason: str = "customer_request") -> Booking:
        """
        Release a pending booking's seats and mark it cancelled.

        Cancelling an already cancelled booking returns it unchanged.

        Raises:
            NotFoundError: If the booking does not exist
            BookingAlreadyConfirmedError: If the booking is paid
            ConflictError: If the booking kept changing underneath
        """
        async def transition(booking: Booking) -> Booking:
            return await self._cancel_loaded(booking, reason)

        return await self._retrying(token, transition)

    async def abort(self, token: str, reason: str) -> Booking:
        """Roll back a pending booking whose charge could not be opened."""
        return await self.cancel(token, reason)

    async def get_booking(self, token: str) -> Booking:
        """Load a booking, expiring it first if it is pending past its hold."""
        return await self._retrying(token, self._expire_loaded)

    async def attach_charge(
        self,
        token: str,
        order_id: str,
        session_ref: str | None = None,
        payment_method: str | None = None,
    ) -> Booking:
        """
        Record the gateway order on a pending booking without changing its status.

        Raises:
            AlreadyCancelledError: If the booking is cancelled
            BookingAlreadyConfirmedError: If the booking is already paid
        """
        changes = {"order_id": order_id}
        if session_ref is not None:
            changes["payment_session_ref"] = session_ref
        if payment_method is not None:
            changes["payment_method"] = payment_method

        async def transition(booking: Booking) -> Booking:
            self._ensure_pending(booking)
            async with self.ledger.critical_section(booking.trip_id):
                try:
                    await self.store.update(booking, BookingStatus.PENDING, **changes)
                    await self.db.commit()
                except Exception:
                    await self.db.rollback()
                    raise
            return booking

        return await self._retrying(token, transition)

    async def expire_stale(self, batch_size: int = 100) -> int:
        """
        Cancel pending bookings whose hold window has passed.

        Returns:
            Number of bookings expired by this sweep
        """
        stale = await self.store.list_expired_pending(self.clock(), batch_size)
        tokens = [booking.token for booking in stale]

        expired = 0
        for token in tokens:
            try:
                booking = await self._retrying(token, self._expire_loaded)
            except ConflictError:
                logger.warning("Could not expire booking, will retry next sweep", extra={"booking_token": token})
                continue
            if booking.status == BookingStatus.CANCELLED.value and booking.cancel_reason == EXPIRED:
                expired += 1

        if expired:
            logger.info("Expired stale bookings", extra={"expired_count": expired, "batch_size": batch_size})
        return expired

    async def availability(self, trip_id: UUID | str) -> dict[str, list[str]]:
        """Seat availability snapshot, in the trip's seat order."""
        trip = await self.trips.get_trip(trip_id)
        committed = await self.ledger.committed_seats(trip.id)
        unavailable = await self.ledger.unavailable_seats(trip.id)
        return {
            "booked_seats": [seat for seat in trip.seat_ids if seat in committed],
            "unavailable_seats": [seat for seat in trip.seat_ids if seat in unavailable],
            "available_seats": [seat for seat in trip.seat_ids if seat not in unavailable],
        }

    async def _retrying(self, token: str, transition: Callable[[Booking], Awaitable[Booking]]) -> Booking:
        try:
            return await transition(await self._load(token))
        except ConflictError:
            logger.info("Retrying booking transition after conflict", extra={"booking_token": token})
            return await transition(await self._load(token))

    async def _load(self, token: str) -> Booking:
        booking = await self.store.get_by_token(token)
        if not booking:
            logger.warning("Booking not found", extra={"booking_token": token})
            raise NotFoundError(resource_type="booking", resource_id=token)
        return booking

    def _is_expired(self, booking: Booking) -> bool:
        return booking.status == BookingStatus.PENDING.value and booking.expires_at <= self.clock()

    def _ensure_pending(self, booking: Booking) -> None:
        if booking.status == BookingStatus.CANCELLED.value:
            raise AlreadyCancelledError(booking.token, booking.cancel_reason)
        if booking.status == BookingStatus.CONFIRMED.value:
            raise BookingAlreadyConfirmedError(booking.token)

    async def _confirm_loaded(self, booking: Booking, gateway_txn_id: str, payment_method: str | None) -> Booking:
        if booking.status == BookingStatus.CONFIRMED.value:
            logger.info(
                "Booking already confirmed",
                extra={"booking_token": booking.token, "gateway_txn_id": gateway_txn_id}
            )
            return booking

        if self._is_expired(booking):
            await self._cancel_pending(booking, EXPIRED)
        self._ensure_pending(booking)

        token = booking.token
        changes = {
            "status": BookingStatus.CONFIRMED,
            "gateway_txn_id": gateway_txn_id,
            "paid_at": self.clock(),
        }
        if payment_method is not None:
            changes["payment_method"] = payment_method

        async with self.ledger.critical_section(booking.trip_id):
            try:
                await self.store.update(booking, BookingStatus.PENDING, reason="payment_confirmed", **changes)
                await self.ledger.commit(booking.hold_id)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        metrics_collector.record_booking_confirmed()
        logger.info(
            "Booking confirmed",
            extra={
                "booking_token": token,
                "trip_id": str(booking.trip_id),
                "seat_ids": booking.seat_ids,
                "gateway_txn_id": gateway_txn_id,
            }
        )

        if self.notifications is not None:
            self.notifications.enqueue(token)

        return booking

    async def _cancel_loaded(self, booking: Booking, reason: str) -> Booking:
        if booking.status == BookingStatus.CANCELLED.value:
            logger.info(
                "Booking already cancelled",
                extra={"booking_token": booking.token, "cancel_reason": booking.cancel_reason}
            )
            return booking
        if booking.status == BookingStatus.CONFIRMED.value:
            raise BookingAlreadyConfirmedError(booking.token)
        if self._is_expired(booking):
            reason = EXPIRED
        return await self._cancel_pending(booking, reason)

    async def _expire_loaded(self, booking: Booking) -> Booking:
        if self._is_expired(booking):
            return await self._cancel_pending(booking, EXPIRED)
        return booking

    async def _cancel_pending(self, booking: Booking, reason: str) -> Booking:
        token = booking.token
        async with self.ledger.critical_section(booking.trip_id):
            try:
                await self.store.update(
                    booking,
                    BookingStatus.PENDING,
                    reason=reason,
                    status=BookingStatus.CANCELLED,
                    cancel_reason=reason,
                )
                if booking.hold_id is not None:
                    await self.ledger.release(booking.hold_id)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        metrics_collector.record_booking_cancelled(reason)
        logger.info(
            "Booking cancelled",
            extra={"booking_token": token, "trip_id": str(booking.trip_id), "cancel_reason": reason}
        )
        return booking
