"""Tests for the event worker: exhaustive dispatch, ordering, failure isolation."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from reminderbot.core.events.worker import EventWorker
from reminderbot.shared.errors import StoreConflict
from reminderbot.shared.schemas.events import (
    EVENT_TYPES,
    ContextSubmitted,
    NotifyRequested,
    PendingCancelled,
    PendingConfirmed,
    PendingExpired,
    parse_event,
)


@pytest.fixture
def mock_flow():
    flow = MagicMock()
    flow.handle_request = AsyncMock()
    flow.confirm = AsyncMock()
    flow.cancel = AsyncMock()
    flow.submit_context = AsyncMock()
    flow.notify_expired = AsyncMock()
    return flow


class TestDispatchTable:
    def test_covers_every_event_type(self, bus, mock_flow, chat):
        worker = EventWorker(bus, mock_flow, chat)
        assert set(worker.handlers) == set(EVENT_TYPES)

    def test_missing_handler_is_rejected(self, bus, mock_flow, chat):
        handlers = {NotifyRequested: mock_flow.handle_request}
        with pytest.raises(TypeError, match="PendingConfirmed"):
            EventWorker(bus, mock_flow, chat, handlers=handlers)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event,handler",
        [
            (NotifyRequested(text="x", user_id="U", channel_id="C"), "handle_request"),
            (PendingConfirmed(request_id="r", user_id="U"), "confirm"),
            (PendingCancelled(request_id="r", user_id="U"), "cancel"),
            (ContextSubmitted(request_id="r", user_id="U", context="c"), "submit_context"),
            (PendingExpired(request_id="r", user_id="U", channel_id="C"), "notify_expired"),
        ],
    )
    async def test_routes_by_type(self, bus, mock_flow, chat, event, handler):
        worker = EventWorker(bus, mock_flow, chat)
        await worker.dispatch(event)
        getattr(mock_flow, handler).assert_awaited_once_with(event)


class TestRun:
    @pytest.mark.asyncio
    async def test_processes_in_publish_order_then_stops(self, bus, mock_flow, chat):
        seen = []
        mock_flow.handle_request.side_effect = lambda e: seen.append(e.text)
        for n in range(3):
            await bus.publish(NotifyRequested(text=f"e{n}", user_id="U", channel_id="C"))
        bus.close()

        worker = EventWorker(bus, mock_flow, chat)
        await worker.run()

        assert seen == ["e0", "e1", "e2"]
        assert worker.processed == 3
        assert not worker.running

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_loop_continues(self, bus, mock_flow, chat):
        mock_flow.handle_request.side_effect = [StoreConflict("r1"), None]
        await bus.publish(NotifyRequested(text="first", user_id="U", channel_id="C"))
        await bus.publish(NotifyRequested(text="second", user_id="U", channel_id="C"))
        bus.close()

        await EventWorker(bus, mock_flow, chat).run()

        assert mock_flow.handle_request.await_count == 2
        assert chat.messages == [
            ("C", "Something went wrong creating your notification, please try again.")
        ]

    @pytest.mark.asyncio
    async def test_unexpected_error_uses_generic_message(self, bus, mock_flow, chat):
        mock_flow.notify_expired.side_effect = RuntimeError("boom")
        worker = EventWorker(bus, mock_flow, chat)

        await worker.dispatch(PendingExpired(request_id="r", user_id="U", channel_id="C"))

        assert chat.texts("C") == ["Sorry, I encountered an error processing your request."]

    @pytest.mark.asyncio
    async def test_failed_report_does_not_escape(self, bus, mock_flow, chat):
        mock_flow.handle_request.side_effect = RuntimeError("boom")
        chat.fail = True
        worker = EventWorker(bus, mock_flow, chat)

        await worker.dispatch(NotifyRequested(text="x", user_id="U", channel_id="C"))

        assert worker.processed == 1

    @pytest.mark.asyncio
    async def test_event_without_channel_is_only_logged(self, bus, mock_flow, chat):
        mock_flow.confirm.side_effect = RuntimeError("boom")
        await EventWorker(bus, mock_flow, chat).dispatch(PendingConfirmed(request_id="r", user_id="U"))
        assert chat.messages == []


class TestEventSchemas:
    def test_events_are_frozen(self):
        event = NotifyRequested(text="x", user_id="U", channel_id="C")
        with pytest.raises(Exception):
            event.text = "y"

    def test_parse_event_round_trips_by_kind(self):
        event = ContextSubmitted(request_id="r", user_id="U", context="later")
        assert parse_event(event.model_dump_json()) == event
        assert isinstance(parse_event({"kind": "pending_cancelled", "request_id": "r", "user_id": "U"}), PendingCancelled)
