"""
Rate-limited request queue for a single geocoding provider.

Requests are dispatched one at a time by a single worker task, at least
``min_interval`` seconds apart. Pending demand is capped at ``max_queue_size``;
beyond that ``enqueue`` refuses work immediately with ``QueueFullError``.

Items flagged ``priority`` go ahead of normal items; within each tier the
order is first in, first out.
"""
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional
import asyncio
import logging
import math

from geotrail.config import QUEUE_MAX_SIZE, QUEUE_MIN_INTERVAL
from geotrail.geocoding.errors import QueueFullError
from geotrail.models.geocode import CityQuery

logger = logging.getLogger(__name__)

# Pause between two iterations of the worker loop
DISPATCH_SPACING = 0.01


@dataclass
class QueueItem:
    query: CityQuery
    enqueued_at: float
    future: asyncio.Future
    priority: bool = False


class RequestQueue:
    def __init__(
        self,
        name: str,
        handler: Callable[[CityQuery], Awaitable],
        min_interval: float = QUEUE_MIN_INTERVAL,
        max_queue_size: int = QUEUE_MAX_SIZE,
        spacing: float = DISPATCH_SPACING,
    ):
        self.name = name
        self.handler = handler
        self.min_interval = min_interval
        self.max_queue_size = max_queue_size
        self.spacing = spacing
        self._priority_items: Deque[QueueItem] = deque()
        self._items: Deque[QueueItem] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[QueueItem] = None
        self._last_dispatch: Optional[float] = None

    def enqueue(self, query: CityQuery, priority: bool = False) -> asyncio.Future:
        """
        Queue ``query`` and return a future for the handler's result.

        Must be called from a running event loop. Raises ``QueueFullError``
        right away, without queuing anything, when the queue is at capacity.
        """
        loop = asyncio.get_running_loop()
        pending = self.get_queue_length()
        if pending >= self.max_queue_size:
            logger.warning(f"{self.name} queue is full ({pending} pending), rejecting {query.name}")
            raise QueueFullError(self.name, pending, self.retry_after_seconds())

        item = QueueItem(query=query, enqueued_at=loop.time(), future=loop.create_future(), priority=priority)
        if priority:
            self._priority_items.append(item)
        else:
            self._items.append(item)
        logger.debug(f"Queued {query.name} for {self.name}{' (high priority)' if priority else ''}, {pending + 1} pending")

        self._ensure_worker(loop)
        return item.future

    def get_queue_length(self) -> int:
        return len(self._priority_items) + len(self._items)

    def is_processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def retry_after_seconds(self) -> int:
        return math.ceil(self.min_interval * self.get_queue_length())

    def close(self) -> None:
        """Stop the worker and cancel everything still waiting."""
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None
        if self._current is not None and not self._current.future.done():
            self._current.future.cancel()
        self._current = None
        while self._priority_items or self._items:
            item = self._next_item()
            if not item.future.done():
                item.future.cancel()

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        # A worker left over from another (closed) event loop will never run again
        if self.is_processing() and self._worker.get_loop() is loop:
            return
        self._worker = loop.create_task(self._process_queue())

    def _next_item(self) -> Optional[QueueItem]:
        if self._priority_items:
            return self._priority_items.popleft()
        if self._items:
            return self._items.popleft()
        return None

    async def _process_queue(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            item = self._next_item()
            if item is None:
                return

            if item.future.cancelled():
                logger.debug(f"Skipping abandoned request for {item.query.name}")
                continue

            self._current = item
            try:
                if self._last_dispatch is not None:
                    wait = max(0.0, self.min_interval - (loop.time() - self._last_dispatch))
                    if wait > 0:
                        await asyncio.sleep(wait)
                result = await self.handler(item.query)
            except asyncio.CancelledError:
                item.future.cancel()
                raise
            except Exception as e:
                logger.warning(f"Error processing {self.name} queue item for {item.query.name}: {e}")
                if not item.future.done():
                    item.future.set_exception(e)
            else:
                if not item.future.done():
                    item.future.set_result(result)
            finally:
                self._last_dispatch = loop.time()
                if self._current is item:
                    self._current = None

            await asyncio.sleep(self.spacing)
