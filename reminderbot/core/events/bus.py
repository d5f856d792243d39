"""Bounded multi-producer / single-consumer bus for domain events."""

from __future__ import annotations

import asyncio

import structlog

from reminderbot.shared.errors import BusCapacityExceeded, BusClosed
from reminderbot.shared.schemas.events import DomainEvent

logger = structlog.get_logger()


class EventBus:
    """FIFO of ``DomainEvent`` with backpressure and an explicit shutdown.

    ``publish`` waits up to a timeout for space and never drops an event.
    ``next`` is the only way to consume; after ``close`` it keeps returning
    buffered events and then ``None``.
    """

    def __init__(self, capacity: int = 100, publish_timeout: float = 2.0):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.publish_timeout = publish_timeout
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    async def publish(self, event: DomainEvent, timeout: float | None = None) -> None:
        """Enqueue *event*.

        Raises ``BusCapacityExceeded`` if the buffer stays full for *timeout*
        seconds and ``BusClosed`` if the bus is, or becomes, closed first.
        """
        if self.closed:
            raise BusClosed("event bus is closed")

        try:
            self._queue.put_nowait(event)
            return
        except asyncio.QueueFull:
            pass

        wait = self.publish_timeout if timeout is None else timeout
        put = asyncio.ensure_future(self._queue.put(event))
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {put, closed}, timeout=wait, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (put, closed):
                if not task.done():
                    task.cancel()

        if put in done:
            return
        if closed in done:
            raise BusClosed("event bus closed while waiting for capacity")
        logger.warning("event_bus_full", kind=event.kind, capacity=self.capacity, timeout=wait)
        raise BusCapacityExceeded(f"event bus full ({self.capacity} events)")

    async def next(self) -> DomainEvent | None:
        """Wait for the next event; ``None`` once closed and drained."""
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self.closed:
                return None

            get = asyncio.ensure_future(self._queue.get())
            closed = asyncio.ensure_future(self._closed.wait())
            done, _ = await asyncio.wait({get, closed}, return_when=asyncio.FIRST_COMPLETED)
            if get in done:
                closed.cancel()
                return get.result()
            # Closed: loop round to drain what is still buffered
            get.cancel()

    def close(self) -> None:
        if not self.closed:
            self._closed.set()
            logger.info("event_bus_closed", buffered=self.qsize())
