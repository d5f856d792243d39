"""Expire pending confirmations nobody answered."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import structlog

from reminderbot.core.actions.pending_store import PendingActionStore
from reminderbot.core.events.bus import EventBus
from reminderbot.shared.errors import BusCapacityExceeded, BusClosed
from reminderbot.shared.schemas.events import PendingExpired
from reminderbot.shared.utils.timefmt import utcnow
from reminderbot.tasks.runner import run_periodic

logger = structlog.get_logger()

SWEEP_INTERVAL_SECONDS = 30.0


async def sweep_pending(
    store: PendingActionStore,
    bus: EventBus,
    ttl: timedelta,
    now: datetime | None = None,
    backlog: list[PendingExpired] | None = None,
) -> int:
    """Remove expired entries and publish one ``PendingExpired`` per entry.

    Notices the bus has no room for stay in *backlog*, oldest first, and go
    out ahead of new ones on the next sweep. Returns how many were published.
    """
    if backlog is None:
        backlog = []
    for pending in store.sweep_expired(now or utcnow(), ttl):
        backlog.append(
            PendingExpired(
                request_id=pending.request_id,
                user_id=pending.user_id,
                channel_id=pending.channel_id,
            )
        )

    published = 0
    while backlog:
        try:
            await bus.publish(backlog[0])
        except BusClosed:
            logger.info("expiry_notices_dropped_on_shutdown", count=len(backlog))
            backlog.clear()
            break
        except BusCapacityExceeded:
            logger.warning("expiry_notices_deferred", count=len(backlog))
            break
        backlog.pop(0)
        published += 1
    return published


async def expiry_loop(
    store: PendingActionStore,
    bus: EventBus,
    stop: asyncio.Event,
    ttl: timedelta,
    interval: float = SWEEP_INTERVAL_SECONDS,
) -> None:
    backlog: list[PendingExpired] = []
    await run_periodic(
        "expiry_loop",
        lambda: sweep_pending(store, bus, ttl, backlog=backlog),
        interval,
        stop,
    )
