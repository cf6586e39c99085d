"""Unit tests for confirmation notifications and the notification worker."""

import asyncio
import json

import httpx
import pytest

from busbooking.services.notification_service import (
    LogNotifier,
    NotificationQueue,
    Notifier,
    WebhookNotifier,
    build_notifier,
    deliver,
)
from busbooking.workers.notification_worker import NotificationWorker


class RecordingNotifier(Notifier):
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.closed = False

    async def notify(self, booking_token: str) -> None:
        if booking_token in self.fail_for:
            raise RuntimeError("mail server down")
        self.sent.append(booking_token)

    async def aclose(self) -> None:
        self.closed = True


def test_full_queue_drops_notice():
    queue = NotificationQueue(maxsize=1)

    assert queue.enqueue("TKT-1") is True
    assert queue.enqueue("TKT-2") is False
    assert queue.dropped == 1
    assert queue.qsize() == 1


def test_build_notifier():
    assert isinstance(build_notifier(None), LogNotifier)
    assert isinstance(build_notifier("https://hooks.example.test/booked"), WebhookNotifier)


@pytest.mark.asyncio
async def test_deliver_swallows_failures():
    notifier = RecordingNotifier(fail_for={"TKT-BAD"})

    assert await deliver(notifier, "TKT-OK") is True
    assert await deliver(notifier, "TKT-BAD") is False
    assert notifier.sent == ["TKT-OK"]


@pytest.mark.asyncio
async def test_worker_drains_queue_and_survives_failures():
    queue = NotificationQueue(maxsize=10)
    notifier = RecordingNotifier(fail_for={"TKT-2"})
    worker = NotificationWorker(queue, notifier)
    for token in ("TKT-1", "TKT-2", "TKT-3"):
        queue.enqueue(token)

    sent = await worker.drain()

    assert sent == 2
    assert notifier.sent == ["TKT-1", "TKT-3"]
    assert queue.qsize() == 0


@pytest.mark.asyncio
async def test_worker_flushes_on_stop():
    queue = NotificationQueue(maxsize=10)
    notifier = RecordingNotifier()
    worker = NotificationWorker(queue, notifier, interval_seconds=3600)

    await worker.start()
    assert worker.is_running
    queue.enqueue("TKT-LATE")
    await worker.stop()

    assert not worker.is_running
    assert notifier.sent == ["TKT-LATE"]
    assert notifier.closed


class GatedNotifier(RecordingNotifier):
    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def notify(self, booking_token: str) -> None:
        self.started.set()
        await self.gate.wait()
        await super().notify(booking_token)


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_delivery():
    queue = NotificationQueue(maxsize=10)
    notifier = GatedNotifier()
    worker = NotificationWorker(queue, notifier, interval_seconds=3600)
    queue.enqueue("TKT-1")
    queue.enqueue("TKT-2")

    await worker.start()
    await asyncio.wait_for(notifier.started.wait(), timeout=1)
    stopping = asyncio.create_task(worker.stop())
    await asyncio.sleep(0)
    notifier.gate.set()
    await asyncio.wait_for(stopping, timeout=1)

    assert notifier.sent == ["TKT-1", "TKT-2"]
    assert queue.qsize() == 0
    assert notifier.closed


@pytest.mark.asyncio
async def test_webhook_notifier_posts_token():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = WebhookNotifier("https://hooks.example.test/booked", client=client)

    await notifier.notify("TKT-9")

    assert received == [{"booking_token": "TKT-9"}]


@pytest.mark.asyncio
async def test_webhook_notifier_raises_on_error_status():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = WebhookNotifier("https://hooks.example.test/booked", client=client)

    assert await deliver(notifier, "TKT-9") is False
