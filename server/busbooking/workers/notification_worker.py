"""Background worker that delivers booking confirmation notices."""

import asyncio
import logging
from typing import Optional

from ..services.notification_service import NotificationQueue, Notifier, deliver
from .base import BaseWorker

logger = logging.getLogger(__name__)


class NotificationWorker(BaseWorker):
    """Drains the notification queue. Delivery failures never reach the booking flow."""

    def __init__(self, queue: NotificationQueue, notifier: Notifier, interval_seconds: float = 1):
        super().__init__(name="Notification", interval_seconds=interval_seconds)
        self.queue = queue
        self.notifier = notifier
        self._delivery: Optional[asyncio.Task] = None

    async def process(self) -> None:
        await self.drain()

    async def drain(self) -> int:
        """Deliver everything queued right now. Returns the number of notices sent."""
        sent = 0
        while (token := self.queue.get_nowait()) is not None:
            # Shielded so stopping the worker does not abandon a notice already dequeued
            self._delivery = asyncio.create_task(deliver(self.notifier, token))
            try:
                if await asyncio.shield(self._delivery):
                    sent += 1
            finally:
                self.queue.task_done()
        return sent

    async def on_stop(self) -> None:
        if self._delivery is not None and not self._delivery.done():
            logger.info("Waiting for in-flight notification before shutdown")
            await self._delivery
        pending = self.queue.qsize()
        if pending:
            logger.info("Flushing queued notifications before shutdown", extra={"pending": pending})
            await self.drain()
        await self.notifier.aclose()
