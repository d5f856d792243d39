"""Announce calendar events shortly before they start."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import structlog

from reminderbot.comms.chat_client import ChatClient
from reminderbot.services.calendar_service import CalendarService
from reminderbot.shared.errors import RemoteDeliveryFailure
from reminderbot.shared.models.calendar_event import CalendarEvent
from reminderbot.shared.utils.timefmt import format_time, utcnow
from reminderbot.tasks.runner import run_periodic

logger = structlog.get_logger()

LOOP_INTERVAL_SECONDS = 60.0
LEAD_MINUTES = 15


def format_event(event: CalendarEvent, tz: str) -> str:
    text = f"<@{event.user_id}> Upcoming: {event.title} at {format_time(event.start_time, tz)}"
    if event.description:
        text += f"\n{event.description}"
    return text


async def announce_upcoming_events(
    calendar: CalendarService,
    chat: ChatClient,
    lead_minutes: int = LEAD_MINUTES,
    tz: str = "America/New_York",
    now: datetime | None = None,
) -> int:
    """Single pass: post events starting within *lead_minutes*."""
    now = now or utcnow()
    due = await calendar.list_due(now + timedelta(minutes=lead_minutes))
    announced = 0
    for event in due:
        try:
            await chat.send_message(event.channel_id, format_event(event, tz))
        except RemoteDeliveryFailure as e:
            logger.warning("calendar_announce_failed", event_id=str(event.id), error=str(e))
            continue
        await calendar.mark_delivered(event.id)
        announced += 1
    if announced:
        logger.info("calendar_events_announced", count=announced)
    return announced


async def calendar_loop(
    calendar: CalendarService,
    chat: ChatClient,
    stop: asyncio.Event,
    interval: float = LOOP_INTERVAL_SECONDS,
    lead_minutes: int = LEAD_MINUTES,
    tz: str = "America/New_York",
) -> None:
    await run_periodic(
        "calendar_loop",
        lambda: announce_upcoming_events(calendar, chat, lead_minutes, tz),
        interval,
        stop,
    )
