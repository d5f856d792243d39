"""Inbound interactions: slash commands, button presses and modal submits.

Everything here only publishes events or calls the todo service, then
answers the interaction. The actual work happens on the event worker, so
Discord gets its reply well inside the three-second window.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from reminderbot.comms.discord_bot.normalizer import parse_custom_id
from reminderbot.core.events.bus import EventBus
from reminderbot.services.todo_service import TodoService, format_todo_list
from reminderbot.shared.errors import BusCapacityExceeded, BusClosed, user_message
from reminderbot.shared.schemas.events import (
    ContextSubmitted,
    NotifyRequested,
    PendingCancelled,
    PendingConfirmed,
)
from reminderbot.shared.schemas.prompts import CANCEL_ACTION, CONFIRM_ACTION, CONTEXT_ACTION

logger = structlog.get_logger()

MISSING_TEXT_MESSAGE = "Missing `text` argument for /notify"
ACCEPTED_MESSAGE = "Got it, processing your notification."
PROCESSING_MESSAGE = "Processing your request."
CONTEXT_THANKS_MESSAGE = "Thanks! Updating your notification preview."
TODO_DISABLED_MESSAGE = "Todo lists are turned off for this bot."


class Responder(Protocol):
    """How an interaction gets answered on the platform."""

    async def reply_ephemeral(self, text: str) -> None:
        ...

    async def reply_update(self, text: str) -> None:
        """Replace the message the pressed button belongs to."""
        ...

    async def show_modal(self, request_id: str) -> None:
        ...


class InteractionHandler:
    def __init__(self, bus: EventBus, todos: TodoService | None = None):
        self.bus = bus
        self.todos = todos

    async def _publish(self, responder: Responder, event) -> bool:
        try:
            await self.bus.publish(event)
        except (BusCapacityExceeded, BusClosed) as e:
            logger.warning("interaction_publish_failed", kind=event.kind, error=str(e))
            await responder.reply_ephemeral(user_message(e))
            return False
        return True

    async def on_notify(
        self,
        responder: Responder,
        text: str | None,
        user_id: str,
        channel_id: str,
    ) -> None:
        if not text or not text.strip():
            await responder.reply_ephemeral(MISSING_TEXT_MESSAGE)
            return

        event = NotifyRequested(text=text.strip(), user_id=user_id, channel_id=channel_id)
        if await self._publish(responder, event):
            logger.info("notify_command_received", user_id=user_id, channel_id=channel_id)
            await responder.reply_ephemeral(ACCEPTED_MESSAGE)

    async def on_component(
        self,
        responder: Responder,
        custom_id: str,
        user_id: str,
        channel_id: str | None,
    ) -> bool:
        """Handle a button press. Returns False for ids this bot does not own."""
        parsed = parse_custom_id(custom_id)
        if parsed is None:
            logger.warning("unknown_component", custom_id=custom_id)
            return False
        action, request_id = parsed

        if action == CONTEXT_ACTION:
            await responder.show_modal(request_id)
            return True

        if action == CONFIRM_ACTION:
            event = PendingConfirmed(request_id=request_id, user_id=user_id, channel_id=channel_id)
        elif action == CANCEL_ACTION:
            event = PendingCancelled(request_id=request_id, user_id=user_id, channel_id=channel_id)
        else:
            logger.warning("unknown_component", custom_id=custom_id)
            return False

        if await self._publish(responder, event):
            await responder.reply_update(PROCESSING_MESSAGE)
        return True

    async def on_context_submit(
        self,
        responder: Responder,
        request_id: str,
        context: str,
        user_id: str,
        channel_id: str | None,
    ) -> None:
        event = ContextSubmitted(
            request_id=request_id,
            user_id=user_id,
            context=context,
            channel_id=channel_id,
        )
        if await self._publish(responder, event):
            await responder.reply_ephemeral(CONTEXT_THANKS_MESSAGE)

    # -- /todo ---------------------------------------------------------------

    async def on_todo_add(self, responder: Responder, user_id: str, text: str | None) -> None:
        todos = await self._todos(responder)
        if todos is None:
            return
        if not text or not text.strip():
            await responder.reply_ephemeral("Missing `text` argument for /todo add")
            return
        await todos.create(user_id, text)
        await responder.reply_ephemeral("Added to your todo list.")

    async def on_todo_list(self, responder: Responder, user_id: str) -> None:
        todos = await self._todos(responder)
        if todos is None:
            return
        items = await todos.list_open(user_id)
        if not items:
            await responder.reply_ephemeral("You have no open todos.")
            return
        await responder.reply_ephemeral(f"Your open todos:\n{format_todo_list(items)}")

    async def on_todo_done(self, responder: Responder, user_id: str, index: int | None) -> None:
        todos = await self._todos(responder)
        if todos is None:
            return
        if index is None or index < 1:
            await responder.reply_ephemeral("Provide a valid index for /todo done.")
            return
        item = await todos.complete(user_id, index)
        if item is None:
            await responder.reply_ephemeral("That todo index does not exist.")
            return
        await responder.reply_ephemeral("Marked as done.")

    async def on_todo_clear(self, responder: Responder, user_id: str) -> None:
        todos = await self._todos(responder)
        if todos is None:
            return
        await todos.clear_completed(user_id)
        await responder.reply_ephemeral("Cleared completed todos.")

    async def _todos(self, responder: Responder) -> TodoService | None:
        """The todo service, or ``None`` after telling the user todos are off."""
        if self.todos is None:
            await responder.reply_ephemeral(TODO_DISABLED_MESSAGE)
        return self.todos
