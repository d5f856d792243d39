"""Shared test fixtures for the reminderbot test suite.

Provides settings, a throwaway SQLite database, and fake chat / completion
clients so the core can run without Discord or OpenAI.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from reminderbot.comms.chat_client import ChatClient
from reminderbot.core.actions.drafts import DraftBuilder
from reminderbot.core.actions.notify_flow import NotifyFlow
from reminderbot.core.actions.pending_store import PendingActionStore
from reminderbot.core.events.bus import EventBus
from reminderbot.core.llm.client import CompletionClient
from reminderbot.core.routing import Intent, IntentResult
from reminderbot.services.notification_service import NotificationService
from reminderbot.services.todo_service import TodoService
from reminderbot.shared.config import Settings
from reminderbot.shared.database import create_engine, create_session_factory, init_db
from reminderbot.shared.errors import CompletionError, RemoteDeliveryFailure


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCompletionClient(CompletionClient):
    """Replays scripted replies; an Exception in the script is raised instead."""

    def __init__(self):
        self.replies: list = []
        self.default: str | None = None
        self.delay = 0.0
        self.calls: list[dict] = []

    async def complete(self, prompt, *, system=None, timeout=None):
        self.calls.append({"prompt": prompt, "system": system, "timeout": timeout})
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else self.default
        if reply is None:
            raise CompletionError("no reply scripted")
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeChatClient(ChatClient):
    """Records everything it is asked to send."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.prompts: list[tuple[str, str, list]] = []
        self.direct_messages: list[tuple[str, str]] = []
        self.fail = False
        self._next_id = 1000

    def _check(self):
        if self.fail:
            raise RemoteDeliveryFailure("chat is down")

    def _message_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def send_message(self, channel_id, text):
        self._check()
        self.messages.append((channel_id, text))
        return self._message_id()

    async def send_interactive_prompt(self, channel_id, text, actions):
        self._check()
        self.prompts.append((channel_id, text, actions))
        return self._message_id()

    async def send_direct_message(self, user_id, text):
        self._check()
        self.direct_messages.append((user_id, text))

    def texts(self, channel_id: str | None = None) -> list[str]:
        return [t for c, t in self.messages if channel_id is None or c == channel_id]


class FakeResponder:
    """Stands in for a platform interaction."""

    def __init__(self):
        self.ephemeral: list[str] = []
        self.updates: list[str] = []
        self.modals: list[str] = []

    async def reply_ephemeral(self, text):
        self.ephemeral.append(text)

    async def reply_update(self, text):
        self.updates.append(text)

    async def show_modal(self, request_id):
        self.modals.append(request_id)


# ---------------------------------------------------------------------------
# Settings & storage
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        openai_api_key="",
        discord_client_secret="",
        discord_user_id="111",
        discord_channel_id="222",
        timezone="America/New_York",
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'reminderbot.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def chat():
    return FakeChatClient()


@pytest.fixture
def completion():
    return FakeCompletionClient()


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def store():
    return PendingActionStore()


@pytest.fixture
def bus():
    return EventBus(capacity=10, publish_timeout=0.1)


@pytest.fixture
def classifier():
    """Classifier mock; set ``classifier.route.return_value`` per test."""
    mock = AsyncMock()
    mock.route.return_value = IntentResult(intent=Intent.UNKNOWN, normalized_text="")
    return mock


@pytest.fixture
def notification_service(session_factory):
    return NotificationService(session_factory, lead_minutes=[1440, 60])


@pytest.fixture
def todo_service(session_factory):
    return TodoService(session_factory)


@pytest.fixture
def flow(classifier, store, chat, completion, notification_service, todo_service):
    return NotifyFlow(
        classifier=classifier,
        store=store,
        chat=chat,
        drafts=DraftBuilder(completion, timeout=1.0),
        notifications=notification_service,
        todos=todo_service,
    )
