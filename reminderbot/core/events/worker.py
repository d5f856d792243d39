"""Single logical consumer of the event bus."""

from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from reminderbot.comms.chat_client import ChatClient
from reminderbot.core.actions.notify_flow import NotifyFlow
from reminderbot.core.events.bus import EventBus
from reminderbot.shared.errors import user_message
from reminderbot.shared.schemas.events import (
    EVENT_TYPES,
    ContextSubmitted,
    NotifyRequested,
    PendingCancelled,
    PendingConfirmed,
    PendingExpired,
)

logger = structlog.get_logger()

Handler = Callable[..., Awaitable[object]]


class EventWorker:
    """Drains the bus in order and dispatches each event by type.

    The dispatch table must cover every member of ``DomainEvent``; a missing
    handler is a ``TypeError`` at construction, not a surprise at runtime.
    """

    def __init__(
        self,
        bus: EventBus,
        flow: NotifyFlow,
        chat: ChatClient,
        handlers: dict[type, Handler] | None = None,
    ):
        self.bus = bus
        self.flow = flow
        self.chat = chat
        self.handlers: dict[type, Handler] = handlers if handlers is not None else {
            NotifyRequested: flow.handle_request,
            PendingConfirmed: flow.confirm,
            PendingCancelled: flow.cancel,
            ContextSubmitted: flow.submit_context,
            PendingExpired: flow.notify_expired,
        }
        missing = [t.__name__ for t in EVENT_TYPES if t not in self.handlers]
        if missing:
            raise TypeError(f"no handler for event types: {', '.join(missing)}")

        self.running = False
        self.processed = 0

    async def run(self) -> None:
        """Consume until the bus signals shutdown."""
        self.running = True
        logger.info("event_worker_started")
        try:
            while True:
                event = await self.bus.next()
                if event is None:
                    break
                await self.dispatch(event)
        finally:
            self.running = False
            logger.info("event_worker_stopped", processed=self.processed)

    async def dispatch(self, event) -> None:
        """Run one handler. Failures are logged and reported, never raised."""
        handler = self.handlers[type(event)]
        try:
            await handler(event)
        except Exception as e:
            logger.exception(
                "event_handler_failed",
                kind=event.kind,
                user_id=getattr(event, "user_id", None),
                error=str(e),
            )
            await self._report(event, e)
        finally:
            self.processed += 1

    async def _report(self, event, error: Exception) -> None:
        channel_id = getattr(event, "channel_id", None)
        if not channel_id:
            return
        try:
            await self.chat.send_message(channel_id, user_message(error))
        except Exception as e:
            logger.error("event_error_report_failed", kind=event.kind, error=str(e))
