"""Calendar events announced shortly before they start."""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from reminderbot.shared.models.calendar_event import CalendarEvent
from reminderbot.shared.utils.timefmt import utcnow

logger = structlog.get_logger()


class CalendarService:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create(
        self,
        title: str,
        user_id: str,
        channel_id: str,
        start_time: datetime,
        end_time: datetime | None = None,
        description: str | None = None,
    ) -> CalendarEvent:
        if end_time is not None and end_time < start_time:
            raise ValueError("end_time is before start_time")
        event = CalendarEvent(
            id=uuid.uuid4(),
            title=title,
            description=description,
            user_id=user_id,
            channel_id=channel_id,
            start_time=start_time,
            end_time=end_time,
            status="scheduled",
        )
        async with self.session_factory() as session:
            session.add(event)
            await session.commit()
        logger.info("calendar_event_created", event_id=str(event.id), start_time=start_time.isoformat())
        return event

    async def list_due(self, before: datetime) -> list[CalendarEvent]:
        """Scheduled events starting at or before *before*, soonest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(CalendarEvent)
                .where(
                    CalendarEvent.status == "scheduled",
                    CalendarEvent.start_time <= before,
                )
                .order_by(CalendarEvent.start_time)
            )
            return list(result.scalars().all())

    async def mark_delivered(self, event_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            event = await session.get(CalendarEvent, event_id)
            if event is None:
                return False
            event.status = "delivered"
            event.delivered_at = utcnow()
            await session.commit()
        return True
