"""
Shared plumbing for the serial work queues.

Both the video queue and the classification queue are the same shape:
an ordered backlog, at most one item in flight, and a single outbound
channel for results. SerialQueue owns the backlog and one worker task that
pulls an item, awaits its full processing, then looks at the backlog
again. There is no busy flag to keep in sync - the worker task existing
is what "busy" means.

Everything runs on one event loop. Backlogs are only touched by their
own controller, so no locks are needed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """
    Single-subscriber outbound channel.

    The consumer is fixed at construction. Delivery is synchronous, so
    items reach the consumer in exactly the order they are emitted.
    """

    def __init__(self, consumer: Optional[Callable[[T], Any]] = None) -> None:
        self._consumer = consumer

    def emit(self, item: T) -> None:
        if self._consumer is not None:
            self._consumer(item)


class SerialQueue(ABC, Generic[T]):
    """
    FIFO backlog drained by a single worker task.

    Subclasses implement _process for one item. Anything _process lets
    escape is logged at the item boundary and the worker moves on; the
    loop itself never raises.

    enqueue-style methods must be called from code running on the event
    loop, since they may need to spawn the worker.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._backlog: deque[T] = deque()
        self._current: Optional[T] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def current(self) -> Optional[T]:
        """The item being processed right now, if any."""
        return self._current

    @property
    def pending_count(self) -> int:
        """Items waiting behind the current one."""
        return len(self._backlog)

    @property
    def is_idle(self) -> bool:
        return self._current is None and not self._backlog

    def _submit(self, items: Iterable[T]) -> int:
        items = list(items)
        if not items:
            return 0

        self._backlog.extend(items)
        self._ensure_worker()
        return len(items)

    def _drain(self) -> list[T]:
        """Drop every item still waiting in the backlog."""
        dropped = list(self._backlog)
        self._backlog.clear()
        return dropped

    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return

        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self._run(), name=f"{self._name}-worker")

    async def _run(self) -> None:
        while self._backlog:
            item = self._backlog.popleft()
            self._current = item
            try:
                await self._process(item)
            except Exception:
                logger.exception("Unhandled error in queue worker", extra={"queue": self._name})
            finally:
                if self._current is item:
                    self._current = None

    @abstractmethod
    async def _process(self, item: T) -> None:
        ...

    async def wait_idle(self) -> None:
        """
        Wait until the worker has nothing left to do.

        Items enqueued while waiting are waited for too, since the same
        worker picks them up.
        """
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def shutdown(self) -> None:
        """
        Drop the backlog and stop the worker, abandoning the item in flight.

        Used when the application exits. The queue can still be used
        afterwards; the next submit starts a fresh worker.
        """
        self._drain()
        worker = self._worker
        if worker is None or worker.done():
            return

        worker.cancel()
        await asyncio.gather(worker, return_exceptions=True)
        logger.info("Queue worker stopped", extra={"queue": self._name})
