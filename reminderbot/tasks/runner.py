"""Shared plumbing for the background loops."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger()


async def sleep_or_stop(stop: asyncio.Event, seconds: float) -> bool:
    """Sleep for *seconds* unless *stop* is set first. Returns True if stopped."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=max(seconds, 0))
        return True
    except asyncio.TimeoutError:
        return False


async def run_periodic(
    name: str,
    tick: Callable[[], Awaitable[object]],
    interval: float,
    stop: asyncio.Event,
) -> None:
    """Call *tick* every *interval* seconds until *stop* is set.

    A failing tick is logged and retried on the next interval.
    """
    logger.info("loop_started", loop=name, interval=interval)
    while not stop.is_set():
        try:
            await tick()
        except Exception:
            logger.exception("loop_tick_failed", loop=name)

        if await sleep_or_stop(stop, interval):
            break
    logger.info("loop_stopped", loop=name)


class TaskRunner:
    """Owns the background tasks and the stop signal they share."""

    def __init__(self):
        self.stop = asyncio.Event()
        self._tasks: dict[str, asyncio.Task] = {}

    def spawn(self, name: str, coro: Awaitable[object]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks[name] = task
        return task

    def is_running(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Signal stop, wait for the tasks, then cancel stragglers."""
        self.stop.set()
        tasks = list(self._tasks.values())
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning("task_cancelled_on_shutdown", task=task.get_name())
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
