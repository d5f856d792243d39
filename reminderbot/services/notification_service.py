"""Committed notifications and their scheduled deliveries."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from reminderbot.core.actions.pending_store import PendingNotification
from reminderbot.shared.models.notification import Notification
from reminderbot.shared.utils.timefmt import utcnow

logger = structlog.get_logger()


def delivery_times(
    event_time: datetime | None,
    lead_minutes: list[int],
    now: datetime,
) -> list[datetime]:
    """When to deliver a notification for *event_time*, earliest first.

    One delivery per lead time that is still ahead of *now*, plus one at the
    event itself. No event time means a single delivery right away.
    """
    if event_time is None:
        return [now]
    times = {event_time}
    for minutes in lead_minutes:
        at = event_time - timedelta(minutes=minutes)
        if at > now:
            times.add(at)
    return sorted(times)


class NotificationService:
    """Create, query and settle notification deliveries."""

    def __init__(self, session_factory: async_sessionmaker, lead_minutes: list[int] | None = None):
        self.session_factory = session_factory
        self.lead_minutes = lead_minutes if lead_minutes is not None else [1440, 60]

    async def create(
        self,
        content: str,
        user_id: str,
        channel_id: str,
        event_time: datetime | None = None,
        request_id: str | None = None,
        now: datetime | None = None,
    ) -> list[Notification]:
        """Persist every delivery for one notification and return the rows."""
        now = now or utcnow()
        rows = [
            Notification(
                id=uuid.uuid4(),
                request_id=request_id,
                content=content,
                event_time=event_time,
                user_id=user_id,
                channel_id=channel_id,
                deliver_at=deliver_at,
                status="pending",
                attempts=0,
            )
            for deliver_at in delivery_times(event_time, self.lead_minutes, now)
        ]

        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()

        logger.info(
            "notification_created",
            request_id=request_id,
            user_id=user_id,
            channel_id=channel_id,
            deliveries=len(rows),
        )
        return rows

    async def create_for_pending(self, pending: PendingNotification) -> list[Notification]:
        return await self.create(
            content=pending.text,
            user_id=pending.user_id,
            channel_id=pending.channel_id,
            event_time=pending.scheduled_at,
            request_id=pending.request_id,
        )

    async def list_due(self, before: datetime, limit: int = 100) -> list[Notification]:
        """Pending deliveries due at or before *before*, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Notification)
                .where(
                    Notification.status == "pending",
                    Notification.deliver_at <= before,
                )
                .order_by(Notification.deliver_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_by_request(self, request_id: str) -> list[Notification]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Notification)
                .where(Notification.request_id == request_id)
                .order_by(Notification.deliver_at)
            )
            return list(result.scalars().all())

    async def mark_delivered(self, notification_id: uuid.UUID) -> bool:
        """Mark a delivery as sent. Returns False if it does not exist."""
        async with self.session_factory() as session:
            notification = await session.get(Notification, notification_id)
            if notification is None:
                return False
            notification.status = "delivered"
            notification.attempts += 1
            notification.delivered_at = utcnow()
            await session.commit()
        return True

    async def record_failure(self, notification_id: uuid.UUID, error: str) -> None:
        """Note a failed send; the delivery stays pending for the next tick."""
        async with self.session_factory() as session:
            notification = await session.get(Notification, notification_id)
            if notification is None:
                return
            notification.attempts += 1
            notification.last_error = error[:2000]
            await session.commit()
