"""Background workers for the bus booking service."""

from .expiry_worker import BookingExpiryWorker
from .notification_worker import NotificationWorker

__all__ = ["BookingExpiryWorker", "NotificationWorker"]
