"""Daily todo digest, sent by DM on a cron schedule."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from croniter import croniter

from reminderbot.comms.chat_client import ChatClient
from reminderbot.services.todo_service import TodoService, format_todo_list
from reminderbot.shared.errors import RemoteDeliveryFailure
from reminderbot.shared.utils.timefmt import utcnow
from reminderbot.tasks.runner import sleep_or_stop

logger = structlog.get_logger()

DEFAULT_CRON = "0 7 * * *"
DIGEST_HEADER = "Good morning! Here is your current todo list:"


def next_run(cron_expr: str, tz: str, now: datetime) -> datetime:
    """Next fire time of *cron_expr* read in *tz*, as UTC."""
    local_now = now.astimezone(ZoneInfo(tz))
    fire_at = croniter(cron_expr, local_now).get_next(datetime)
    return fire_at.astimezone(timezone.utc)


async def send_todo_digests(todos: TodoService, chat: ChatClient) -> int:
    """DM every user with open todos their numbered list."""
    by_user = await todos.open_by_user()
    sent = 0
    for user_id, items in by_user.items():
        try:
            await chat.send_direct_message(user_id, f"{DIGEST_HEADER}\n{format_todo_list(items)}")
        except RemoteDeliveryFailure as e:
            logger.warning("todo_digest_failed", user_id=user_id, error=str(e))
            continue
        sent += 1
    logger.info("todo_digests_sent", users=sent)
    return sent


async def todo_loop(
    todos: TodoService,
    chat: ChatClient,
    stop: asyncio.Event,
    cron_expr: str = DEFAULT_CRON,
    tz: str = "America/New_York",
) -> None:
    logger.info("loop_started", loop="todo_loop", cron=cron_expr, tz=tz)
    while not stop.is_set():
        now = utcnow()
        fire_at = next_run(cron_expr, tz, now)
        logger.info("todo_digest_scheduled", fire_at=fire_at.isoformat())
        if await sleep_or_stop(stop, (fire_at - now).total_seconds()):
            break
        try:
            await send_todo_digests(todos, chat)
        except Exception:
            logger.exception("loop_tick_failed", loop="todo_loop")
    logger.info("loop_stopped", loop="todo_loop")
