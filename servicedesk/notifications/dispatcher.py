"""Queue that decouples lifecycle operations from notification delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from servicedesk.metrics import metrics_registry
from servicedesk.metrics.registry import MetricsRegistry

from .models import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationIntentEmitter(Protocol):
    """Accepts intents synchronously; must never block on delivery."""

    def emit(self, intent: NotificationIntent) -> None:
        ...


class NotificationSender(Protocol):
    """Delivery channel behind the dispatcher."""

    async def send(self, intent: NotificationIntent) -> None:
        ...


class NotificationDispatcher:
    """Buffer intents in an ``asyncio.Queue`` and deliver them from a worker task.

    ``emit`` only enqueues. Delivery failures are logged and counted; they
    never reach the operation that produced the intent.
    """

    def __init__(
        self,
        sender: NotificationSender,
        *,
        maxsize: int = 1000,
        registry: MetricsRegistry | None = None,
    ) -> None:
        self._sender = sender
        self._queue: asyncio.Queue[NotificationIntent] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None
        registry = registry or metrics_registry
        self._emitted = registry.counter("notifications_emitted_total", label_names=("event",))
        self._dropped = registry.counter("notifications_dropped_total")
        self._failures = registry.counter("notification_failures_total", label_names=("event",))
        self._duration = registry.distribution("notification_dispatch_duration_seconds")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def emit(self, intent: NotificationIntent) -> None:
        try:
            self._queue.put_nowait(intent)
        except asyncio.QueueFull:
            self._dropped.inc()
            logger.warning(
                "Notification queue full; dropping %s intent for %s",
                intent.event.value,
                intent.related_entity_id,
            )
            return
        self._emitted.inc(labels={"event": intent.event.value})

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        logger.info("Notification dispatcher started")

    async def drain(self) -> None:
        """Wait until every queued intent has been handled."""

        await self._queue.join()

    async def stop(self, *, drain: bool = True) -> None:
        if drain and self.running:
            await self.drain()
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification dispatcher stopped")

    async def _run(self) -> None:
        while True:
            intent = await self._queue.get()
            try:
                await self._deliver(intent)
            finally:
                self._queue.task_done()

    async def _deliver(self, intent: NotificationIntent) -> None:
        try:
            with self._duration.time():
                await self._sender.send(intent)
        except Exception:
            self._failures.inc(labels={"event": intent.event.value})
            logger.exception(
                "Notification delivery failed for %s (%s)",
                intent.related_entity_id,
                intent.event.value,
            )
