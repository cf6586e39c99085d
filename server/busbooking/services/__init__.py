"""Service layer package."""

from .admin_service import AdminService
from .booking_store import BookingStore
from .notification_service import LogNotifier, NotificationQueue, Notifier, WebhookNotifier
from .payment_gateway import CashfreeGateway, ChargeStatus, PaymentGateway
from .payment_reconciler import PaymentReconciler
from .reservation_engine import ReservationEngine
from .seat_ledger import HoldResult, SeatLedger, TripLockRegistry
from .trip_service import TripService

__all__ = [
    "AdminService",
    "BookingStore",
    "CashfreeGateway",
    "ChargeStatus",
    "HoldResult",
    "LogNotifier",
    "NotificationQueue",
    "Notifier",
    "PaymentGateway",
    "PaymentReconciler",
    "ReservationEngine",
    "SeatLedger",
    "TripLockRegistry",
    "TripService",
    "WebhookNotifier",
]
