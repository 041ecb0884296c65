from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from texforge.app.events.models import BuildEvent, TERMINAL_EVENT_TYPES
from texforge.app.events.emitter import BuildEventEmitter

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(BuildEventEmitter):
    """
    In-memory async event emitter backing the SSE endpoint.

    Single consumer, ordered, and closed automatically by the first
    terminal event (build completed or failed).
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[BuildEvent | None] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: BuildEvent) -> None:
        if self._closed:
            return

        try:
            await self._queue.put(event)
        except Exception as exc:
            logger.warning("Dropped build event %s: %s", event.event_type, exc)
            return

        if event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[BuildEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
