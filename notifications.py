"""
New-order push notifications.

Admin dashboards keep a server-sent-events connection open on /events. Every
order placed while they are connected is pushed to them once; nothing is
buffered for dashboards that connect later.
"""

import asyncio
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

KEEP_ALIVE = ": keep-alive\n\n"


def format_event(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(jsonable_encoder(data))}\n\n"


class Subscriber:
    """An open event stream, fed from any thread and drained on its event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()

    def deliver(self, frame: str) -> None:
        # raises RuntimeError once the loop is closed
        self._loop.call_soon_threadsafe(self._queue.put_nowait, frame)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next frame, or None if nothing arrived within `timeout` seconds."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class OrderEventHub:
    """Registry of open subscribers with best-effort broadcast."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Any] = []

    def subscribe(self, subscriber: Any = None):
        if subscriber is None:
            subscriber = Subscriber()
        with self._lock:
            self._subscribers.append(subscriber)
            count = len(self._subscribers)
        logger.info("Order event subscriber connected (%d open)", count)
        return subscriber

    def unsubscribe(self, subscriber: Any) -> None:
        with self._lock:
            if subscriber not in self._subscribers:
                return
            self._subscribers.remove(subscriber)
            count = len(self._subscribers)
        logger.info("Order event subscriber disconnected (%d open)", count)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def broadcast(self, summary: Dict[str, Any]) -> int:
        """Push `summary` to every subscriber; returns how many accepted it."""
        frame = format_event(summary)
        delivered = 0
        with self._lock:
            for subscriber in list(self._subscribers):
                try:
                    subscriber.deliver(frame)
                    delivered += 1
                except Exception as e:
                    logger.warning("Dropping order event subscriber: %s", e)
                    self._subscribers.remove(subscriber)
        return delivered

    async def stream(self, subscriber: Any = None, keep_alive: float = 15.0):
        """Register a subscriber and yield its SSE chunks until the client goes away."""
        subscriber = self.subscribe(subscriber)
        try:
            yield "\n"
            while True:
                frame = await subscriber.receive(timeout=keep_alive)
                yield frame if frame is not None else KEEP_ALIVE
        finally:
            self.unsubscribe(subscriber)
