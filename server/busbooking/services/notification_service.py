"""Confirmation notifications: a bounded hand-off queue and the notifiers that drain it."""

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from ..core.observability import get_logger, metrics_collector

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivers a confirmation for one booking."""

    @abstractmethod
    async def notify(self, booking_token: str) -> None:
        ...

    async def aclose(self) -> None:
        return None


class LogNotifier(Notifier):
    """Records the confirmation as a structured log line. Used when no webhook is configured."""

    def __init__(self):
        self.log = get_logger("notifications")

    async def notify(self, booking_token: str) -> None:
        self.log.info("booking_confirmed_notification", booking_token=booking_token)


class WebhookNotifier(Notifier):
    """POSTs the booking token to a configured URL."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.url = url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, booking_token: str) -> None:
        response = await self.client.post(self.url, json={"booking_token": booking_token})
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def build_notifier(webhook_url: str | None) -> Notifier:
    if webhook_url:
        return WebhookNotifier(webhook_url)
    return LogNotifier()


class NotificationQueue:
    """
    Bounded queue of booking tokens awaiting a confirmation notice.

    Enqueueing never blocks the booking transaction: when the queue is full
    the notice is dropped and logged.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def enqueue(self, booking_token: str) -> bool:
        try:
            self._queue.put_nowait(booking_token)
        except asyncio.QueueFull:
            self.dropped += 1
            metrics_collector.record_notification("dropped")
            logger.error(
                "Notification queue full, dropping confirmation notice",
                extra={"booking_token": booking_token, "queue_size": self._queue.maxsize}
            )
            return False
        return True

    def get_nowait(self) -> str | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def qsize(self) -> int:
        return self._queue.qsize()


async def deliver(notifier: Notifier, booking_token: str) -> bool:
    """Send one notice. Failures are logged and reported as False, never raised."""
    try:
        await notifier.notify(booking_token)
    except Exception as e:
        metrics_collector.record_notification("failed")
        logger.error(
            "Confirmation notification failed",
            extra={"booking_token": booking_token, "error": str(e)}
        )
        return False

    metrics_collector.record_notification("sent")
    logger.info("Confirmation notification sent", extra={"booking_token": booking_token})
    return True
