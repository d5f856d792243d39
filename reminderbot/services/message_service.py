"""Delivery text for due notifications."""

from __future__ import annotations

from datetime import datetime

import structlog

from reminderbot.core.llm import prompts
from reminderbot.core.llm.client import CompletionClient
from reminderbot.shared.errors import CompletionError
from reminderbot.shared.models.notification import Notification
from reminderbot.shared.utils.timefmt import format_time, utcnow

logger = structlog.get_logger()


def fallback_message(content: str, event_time: str) -> str:
    return f"Notification: {content} at {event_time}"


class NotificationMessageService:
    """Phrase a delivery with the LLM, or fall back to a fixed template."""

    def __init__(
        self,
        completion: CompletionClient | None,
        timeout: float = 15.0,
        tz: str = prompts.DEFAULT_TIMEZONE,
    ):
        self.completion = completion
        self.timeout = timeout
        self.tz = tz

    async def build(self, notification: Notification, now: datetime | None = None) -> str:
        now = now or utcnow()
        event_time = format_time(notification.event_time or notification.deliver_at, self.tz)
        body = await self._generate(notification, event_time, now)
        if not body:
            body = fallback_message(notification.content, event_time)
        return f"<@{notification.user_id}> {body}"

    async def _generate(self, notification: Notification, event_time: str, now: datetime) -> str:
        if self.completion is None:
            return ""

        lines = [f"content: {notification.content}", f"event_time: {event_time}"]
        if notification.event_time is not None and notification.event_time > now:
            hours = (notification.event_time - now).total_seconds() / 3600
            lines.append(f"hours_remaining: {hours:.1f}")

        system, prompt = prompts.build_prompt(
            prompts.NOTIFICATION_MESSAGE, "\n".join(lines), now=now, tz=self.tz
        )
        try:
            text = await self.completion.complete(prompt, system=system, timeout=self.timeout)
        except CompletionError as e:
            logger.warning(
                "notification_message_fallback",
                notification_id=str(notification.id),
                error=str(e),
            )
            return ""
        return text.strip().strip('"')
