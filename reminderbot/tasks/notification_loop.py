"""Deliver notifications whose time has come."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime

import structlog

from reminderbot.comms.chat_client import ChatClient
from reminderbot.services.message_service import NotificationMessageService
from reminderbot.services.notification_service import NotificationService
from reminderbot.shared.errors import RemoteDeliveryFailure
from reminderbot.shared.utils.timefmt import utcnow
from reminderbot.tasks.runner import run_periodic

logger = structlog.get_logger()

# How often the loop wakes up to look for due deliveries
LOOP_INTERVAL_SECONDS = 5.0


async def _settle(notifications: NotificationService, notification_id: uuid.UUID) -> bool:
    try:
        await notifications.mark_delivered(notification_id)
    except Exception:
        logger.exception("notification_settle_failed", notification_id=str(notification_id))
        return False
    return True


async def deliver_due_notifications(
    notifications: NotificationService,
    messages: NotificationMessageService,
    chat: ChatClient,
    now: datetime | None = None,
    unsettled: set[uuid.UUID] | None = None,
) -> int:
    """Single pass: send every due delivery. Returns how many went out.

    *unsettled* holds ids that were sent but could not be marked delivered;
    they are settled on a later pass without being sent again.
    """
    if unsettled is None:
        unsettled = set()
    for notification_id in list(unsettled):
        if await _settle(notifications, notification_id):
            unsettled.discard(notification_id)

    now = now or utcnow()
    due = [n for n in await notifications.list_due(now) if n.id not in unsettled]
    if not due:
        return 0

    logger.info("processing_due_notifications", count=len(due))
    delivered = 0
    for notification in due:
        try:
            text = await messages.build(notification, now)
            await chat.send_message(notification.channel_id, text)
        except RemoteDeliveryFailure as e:
            # Stays pending; the next tick tries again
            logger.warning(
                "notification_delivery_failed",
                notification_id=str(notification.id),
                error=str(e),
            )
            try:
                await notifications.record_failure(notification.id, str(e))
            except Exception:
                logger.exception(
                    "notification_failure_not_recorded", notification_id=str(notification.id)
                )
            continue
        except Exception:
            logger.exception("notification_delivery_error", notification_id=str(notification.id))
            continue

        delivered += 1
        if not await _settle(notifications, notification.id):
            unsettled.add(notification.id)
            continue
        logger.info(
            "notification_delivered",
            notification_id=str(notification.id),
            request_id=notification.request_id,
        )
    return delivered


async def notification_loop(
    notifications: NotificationService,
    messages: NotificationMessageService,
    chat: ChatClient,
    stop: asyncio.Event,
    interval: float = LOOP_INTERVAL_SECONDS,
) -> None:
    unsettled: set[uuid.UUID] = set()
    await run_periodic(
        "notification_loop",
        lambda: deliver_due_notifications(notifications, messages, chat, unsettled=unsettled),
        interval,
        stop,
    )
