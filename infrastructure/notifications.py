"""Notification dispatch over an in-process work queue"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import structlog

from domain.enums import NotificationEvent
from domain.ports import NotificationDispatcher

logger = structlog.get_logger(__name__)


class NotificationSender(ABC):
    """Delivers one notification (email, push, ...)"""

    @abstractmethod
    async def send(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        pass


class LoggingNotificationSender(NotificationSender):
    """Records notifications in the log; delivery channels live elsewhere"""

    async def send(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        logger.info("notification_sent", notification_event=event.value, **payload)


class QueueNotificationDispatcher(NotificationDispatcher):
    """Fire-and-forget dispatcher.

    notify() only enqueues; a background worker drains the queue and hands
    each message to the sender. A full queue or a failing sender drops the
    message with a log line, nothing is retried.
    """

    def __init__(self, sender: NotificationSender, maxsize: int = 1000):
        self._sender = sender
        self._queue: "asyncio.Queue[Tuple[NotificationEvent, Dict[str, Any]]]" = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    def notify(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait((event, payload))
        except asyncio.QueueFull:
            logger.warning("notification_dropped", notification_event=event.value, reason="queue_full")

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Flush pending messages, then stop the worker"""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def drain(self) -> None:
        """Deliver everything queued so far without a running worker"""
        while not self._queue.empty():
            event, payload = self._queue.get_nowait()
            await self._deliver(event, payload)
            self._queue.task_done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            event, payload = await self._queue.get()
            try:
                await self._deliver(event, payload)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        try:
            await self._sender.send(event, payload)
        except Exception as e:
            logger.warning(
                "notification_failed",
                notification_event=event.value,
                error=str(e),
            )
