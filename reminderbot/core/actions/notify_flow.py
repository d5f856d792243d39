"""The ``/notify`` conversation: route, preview, then confirm / cancel / correct."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError

from reminderbot.comms.chat_client import ChatClient
from reminderbot.core.actions.drafts import DraftBuilder
from reminderbot.core.actions.pending_store import (
    PendingActionStore,
    PendingNotification,
    Transition,
)
from reminderbot.core.actions.state_machine import FlowState, NotifyFlowMachine
from reminderbot.core.llm.prompts import DEFAULT_TIMEZONE
from reminderbot.core.routing.classifier import Intent, IntentClassifier
from reminderbot.services.notification_service import NotificationService
from reminderbot.services.todo_service import TodoService
from reminderbot.shared.errors import DraftExtractionError, ExpiredAction, user_message
from reminderbot.shared.schemas.events import (
    ContextSubmitted,
    NotifyRequested,
    PendingCancelled,
    PendingConfirmed,
    PendingExpired,
)
from reminderbot.shared.schemas.prompts import pending_actions
from reminderbot.shared.utils.timefmt import format_time

logger = structlog.get_logger()

CLARIFICATION_MESSAGE = (
    "I can set notifications. What should I notify you about, and when? "
    "Re-run /notify with a time."
)
TODO_ADDED_MESSAGE = "Added to your todo list."
CANCELLED_MESSAGE = "Canceled notification request."
PERSIST_FAILED_MESSAGE = "Failed to persist notification."


def render_pending_message(pending: PendingNotification, tz: str = DEFAULT_TIMEZONE) -> str:
    body = (
        "Please confirm your notification:\n"
        f"Content: {pending.text}\n"
        f"Time: {format_time(pending.scheduled_at, tz)}"
    )
    if pending.extra_context and pending.extra_context.strip():
        body += f"\nAdditional context: {pending.extra_context.strip()}"
    return body


def confirmed_message(pending: PendingNotification, tz: str = DEFAULT_TIMEZONE) -> str:
    return f'Confirmed! I\'ll notify you: "{pending.text}" at {format_time(pending.scheduled_at, tz)}'


class NotifyFlow:
    """Drives each request through ``NotifyFlowMachine``.

    The flow owns no state of its own: pending requests live in the store,
    committed ones in the notification service. Every user-visible outcome
    is posted through the chat client.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        store: PendingActionStore,
        chat: ChatClient,
        drafts: DraftBuilder,
        notifications: NotificationService,
        todos: TodoService | None = None,
        tz: str = DEFAULT_TIMEZONE,
    ):
        self.classifier = classifier
        self.store = store
        self.chat = chat
        self.drafts = drafts
        self.notifications = notifications
        self.todos = todos
        self.tz = tz

    async def handle_request(self, event: NotifyRequested) -> NotifyFlowMachine:
        machine = NotifyFlowMachine(str(uuid.uuid4()))
        machine.advance(FlowState.ROUTING)

        result = await self.classifier.route(event.text)
        logger.info(
            "notify_routed",
            request_id=machine.request_id,
            user_id=event.user_id,
            intent=result.intent.value,
        )

        if result.intent is Intent.NOTIFICATION:
            await self._start_pending(machine, event, result.normalized_text)
        elif result.intent is Intent.TODO and self.todos is not None:
            await self.todos.create(event.user_id, result.normalized_text)
            machine.advance(FlowState.TODO_CREATED)
            await self.chat.send_message(event.channel_id, TODO_ADDED_MESSAGE)
        else:
            machine.advance(FlowState.UNKNOWN)
            await self.chat.send_message(event.channel_id, CLARIFICATION_MESSAGE)
        return machine

    async def _start_pending(
        self,
        machine: NotifyFlowMachine,
        event: NotifyRequested,
        text: str,
    ) -> None:
        try:
            draft = await self.drafts.extract(text)
        except DraftExtractionError as e:
            machine.advance(FlowState.UNKNOWN)
            await self.chat.send_message(event.channel_id, f"Failed to build notification: {e}")
            return

        pending = PendingNotification(
            request_id=machine.request_id,
            text=draft.content,
            user_id=event.user_id,
            channel_id=event.channel_id,
            scheduled_at=draft.time,
            original_text=event.text,
        )
        self.store.put(pending)
        machine.advance(FlowState.PENDING)

        try:
            message_id = await self.chat.send_interactive_prompt(
                pending.channel_id,
                render_pending_message(pending, self.tz),
                pending_actions(pending.request_id),
            )
        except Exception:
            # Nobody can answer a prompt that was never shown
            self.store.remove(pending.request_id)
            raise
        if message_id:
            self.store.update(pending.request_id, message_id=message_id)

    async def confirm(self, event: PendingConfirmed) -> Transition:
        outcome = self.store.confirm(event.request_id, user_id=event.user_id)
        if not outcome.applied:
            await self._report_not_applied(outcome, event.channel_id)
            return outcome

        pending = outcome.pending
        try:
            await self.notifications.create_for_pending(pending)
        except SQLAlchemyError:
            logger.exception("notification_persist_failed", request_id=pending.request_id)
            await self.chat.send_message(pending.channel_id, PERSIST_FAILED_MESSAGE)
            return outcome

        logger.info("pending_confirmed", request_id=pending.request_id, user_id=pending.user_id)
        await self.chat.send_message(pending.channel_id, confirmed_message(pending, self.tz))
        return outcome

    async def cancel(self, event: PendingCancelled) -> Transition:
        outcome = self.store.cancel(event.request_id, user_id=event.user_id)
        if not outcome.applied:
            await self._report_not_applied(outcome, event.channel_id)
            return outcome

        logger.info("pending_cancelled", request_id=event.request_id, user_id=event.user_id)
        await self.chat.send_message(outcome.pending.channel_id, CANCELLED_MESSAGE)
        return outcome

    async def submit_context(self, event: ContextSubmitted) -> PendingNotification | None:
        pending = self.store.get(event.request_id)
        if pending is None:
            await self._report_gone(event.request_id, event.channel_id)
            return None
        if pending.user_id != event.user_id:
            logger.warning(
                "pending_action_forbidden",
                request_id=event.request_id,
                user_id=event.user_id,
            )
            return None

        try:
            draft = await self.drafts.correct(pending.original_text or pending.text, event.context)
        except DraftExtractionError as e:
            await self.chat.send_message(pending.channel_id, f"Failed to build notification: {e}")
            return None

        updated = self.store.update(
            event.request_id,
            text=draft.content,
            scheduled_at=draft.time,
            extra_context=event.context.strip() or None,
        )
        if updated is None:
            # Answered or expired while the correction was being extracted
            await self._report_gone(event.request_id, pending.channel_id)
            return None

        message_id = await self.chat.send_interactive_prompt(
            updated.channel_id,
            render_pending_message(updated, self.tz),
            pending_actions(updated.request_id),
        )
        if message_id:
            updated = self.store.update(updated.request_id, message_id=message_id) or updated
        logger.info("pending_context_applied", request_id=updated.request_id)
        return updated

    async def notify_expired(self, event: PendingExpired) -> None:
        logger.info("pending_expired", request_id=event.request_id, user_id=event.user_id)
        await self.chat.send_message(event.channel_id, user_message(ExpiredAction(event.request_id)))

    async def _report_not_applied(self, outcome: Transition, channel_id: str | None) -> None:
        if outcome.reason == "forbidden":
            logger.warning("pending_action_forbidden", request_id=outcome.request_id)
            return
        if outcome.state in (FlowState.CONFIRMED, FlowState.CANCELLED):
            logger.info(
                "pending_duplicate_ignored",
                request_id=outcome.request_id,
                state=outcome.state.value,
            )
            return
        if outcome.pending is not None:
            channel_id = outcome.pending.channel_id
        await self._send_expired(outcome.request_id, channel_id)

    async def _report_gone(self, request_id: str, channel_id: str | None) -> None:
        state = self.store.finished_state(request_id)
        if state in (FlowState.CONFIRMED, FlowState.CANCELLED):
            logger.info("pending_duplicate_ignored", request_id=request_id, state=state.value)
            return
        await self._send_expired(request_id, channel_id)

    async def _send_expired(self, request_id: str, channel_id: str | None) -> None:
        if not channel_id:
            logger.warning("expired_action_unroutable", request_id=request_id)
            return
        await self.chat.send_message(channel_id, user_message(ExpiredAction(request_id)))
