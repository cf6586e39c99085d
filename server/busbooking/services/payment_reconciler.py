"""Payment reconciler: the only component that talks to the payment gateway."""

import logging
import time
from dataclasses import dataclass

from ..core.config import GatewayConfig
from ..core.exceptions import (
    AlreadyCancelledError,
    ChargeCreationFailedError,
    GatewayError,
    NotFoundError,
    VerificationUnavailableError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..schemas.payment import ReconcileOutcome
from .booking_store import random_base36
from .payment_gateway import ChargeStatus, CustomerRef, PaymentGateway
from .reservation_engine import ReservationEngine

logger = logging.getLogger(__name__)

CHARGE_CREATION_FAILED = "charge_creation_failed"


def generate_order_id() -> str:
    """Generate a gateway order id such as ORD-1718000000000-4K2QZ."""
    return f"ORD-{int(time.time() * 1000)}-{random_base36(5)}"


@dataclass
class ChargeHandle:
    order_id: str
    booking_token: str
    session_ref: str
    amount: int
    currency: str
    env: str


@dataclass
class ReconcileResult:
    order_id: str
    outcome: ReconcileOutcome
    booking: Booking
    gateway_status: str | None = None


_OUTCOME_BY_STATUS = {
    BookingStatus.CONFIRMED.value: ReconcileOutcome.CONFIRMED,
    BookingStatus.PENDING.value: ReconcileOutcome.PENDING,
    BookingStatus.CANCELLED.value: ReconcileOutcome.CANCELLED,
}


class PaymentReconciler:
    """
    Bridges the reservation engine and the payment gateway.

    Gateway calls never run inside the seat ledger's critical section; the
    engine takes it only around its own writes. Every operation tolerates
    repeated delivery for the same order.
    """

    def __init__(self, engine: ReservationEngine, gateway: PaymentGateway, config: GatewayConfig):
        self.engine = engine
        self.gateway = gateway
        self.config = config

    async def initiate(self, booking: Booking) -> ChargeHandle:
        """
        Open a charge for a pending booking.

        The order id is stored on the booking before the gateway is called, so
        a charge opened just before a crash can still be reconciled.

        Args:
            booking: Pending booking returned by the engine

        Returns:
            Handle the client uses to pay

        Raises:
            ChargeCreationFailedError: If the gateway refused; the booking is cancelled and its seats freed
        """
        token = booking.token
        order_id = generate_order_id()
        booking = await self.engine.attach_charge(token, order_id, payment_method=self.gateway.name)

        customer = CustomerRef(
            customer_id=f"CUST-{token}",
            name=booking.customer_name,
            email=booking.email,
            phone=booking.phone,
        )
        return_url = None
        if self.config.return_url:
            return_url = self.config.return_url.replace("{booking_token}", token)

        try:
            session = await self.gateway.open_charge(
                order_id=order_id,
                amount=booking.total_amount,
                currency=booking.currency,
                customer=customer,
                return_url=return_url,
                note=f"Bus booking - {', '.join(booking.seat_ids)} - {token}",
            )
        except GatewayError as e:
            logger.error(
                "Charge creation failed, rolling back booking",
                extra={"booking_token": token, "order_id": order_id, "error": str(e)}
            )
            await self.engine.abort(token, CHARGE_CREATION_FAILED)
            raise ChargeCreationFailedError(token) from e

        booking = await self.engine.attach_charge(token, order_id, session_ref=session.session_ref)

        logger.info(
            "Charge opened",
            extra={"booking_token": token, "order_id": order_id, "amount": booking.total_amount}
        )
        return ChargeHandle(
            order_id=order_id,
            booking_token=token,
            session_ref=session.session_ref,
            amount=booking.total_amount,
            currency=booking.currency,
            env=self.config.env,
        )

    async def reconcile(self, order_id: str) -> ReconcileResult:
        """
        Resolve a pending charge against the gateway.

        PAID confirms, OPEN leaves the booking pending, FAILED or EXPIRED
        cancels it. A confirmed booking, or one whose charge was never
        opened, is reported without asking the gateway. A cancelled booking
        is still checked, so a charge paid after expiry is reported.

        Raises:
            NotFoundError: If no booking carries this order id
            AlreadyCancelledError: If the gateway reports PAID for a cancelled booking
            VerificationUnavailableError: If the gateway could not be asked; the booking keeps its state
        """
        booking = await self.engine.store.get_by_order_id(order_id)
        if not booking:
            logger.warning("Reconcile for unknown order", extra={"order_id": order_id})
            raise NotFoundError(resource_type="order", resource_id=order_id)

        token = booking.token
        if booking.status == BookingStatus.CONFIRMED.value or booking.cancel_reason == CHARGE_CREATION_FAILED:
            return self._result(order_id, booking)

        try:
            charge = await self.gateway.get_charge_status(order_id)
        except GatewayError as e:
            logger.warning(
                "Payment verification unavailable",
                extra={"order_id": order_id, "booking_token": token, "error": str(e)}
            )
            metrics_collector.record_reconcile_outcome("unavailable")
            if booking.status == BookingStatus.CANCELLED.value:
                raise VerificationUnavailableError(
                    order_id,
                    detail="Could not verify payment for a cancelled booking; try again.",
                    booking_status=booking.status,
                ) from e
            raise VerificationUnavailableError(order_id) from e

        if charge.status == ChargeStatus.PAID:
            try:
                booking = await self.engine.confirm(token, charge.transaction_id or order_id)
            except AlreadyCancelledError:
                # Paid after the hold lapsed; reported, never silently accepted
                logger.error(
                    "Payment received for a cancelled booking",
                    extra={"order_id": order_id, "booking_token": token, "gateway_status": charge.gateway_status}
                )
                metrics_collector.record_reconcile_outcome("paid_after_cancel")
                raise
        elif charge.status == ChargeStatus.OPEN:
            booking = await self.engine.get_booking(token)
        else:
            booking = await self.engine.cancel(token, f"payment_{charge.status.value.lower()}")

        result = self._result(order_id, booking, charge.gateway_status)
        logger.info(
            "Order reconciled",
            extra={
                "order_id": order_id,
                "booking_token": token,
                "gateway_status": charge.gateway_status,
                "outcome": result.outcome.value,
            }
        )
        return result

    async def payment_status(self, order_id: str) -> Booking:
        """Local view of the booking behind an order. No gateway I/O."""
        booking = await self.engine.store.get_by_order_id(order_id)
        if not booking:
            raise NotFoundError(resource_type="order", resource_id=order_id)
        return await self.engine.get_booking(booking.token)

    def public_config(self) -> dict[str, str]:
        return {"app_id": self.config.app_id, "env": self.config.env, "mode": self.config.mode}

    def _result(self, order_id: str, booking: Booking, gateway_status: str | None = None) -> ReconcileResult:
        outcome = _OUTCOME_BY_STATUS[booking.status]
        metrics_collector.record_reconcile_outcome(outcome.value)
        return ReconcileResult(order_id=order_id, outcome=outcome, booking=booking, gateway_status=gateway_status)
