"""Wires the long-running bot service together."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import structlog
from discord.errors import LoginFailure, PrivilegedIntentsRequired
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from reminderbot.comms.chat_client import ChatClient
from reminderbot.comms.discord_bot.bot import ReminderDiscordBot
from reminderbot.comms.discord_bot.chat import DiscordChatClient
from reminderbot.comms.discord_bot.interactions import InteractionHandler
from reminderbot.core.actions.drafts import DraftBuilder
from reminderbot.core.actions.notify_flow import NotifyFlow
from reminderbot.core.actions.pending_store import PendingActionStore
from reminderbot.core.events.bus import EventBus
from reminderbot.core.events.worker import EventWorker
from reminderbot.core.llm.client import CompletionClient, OpenAICompletionClient
from reminderbot.core.routing import HeuristicClassifier, IntentClassifier, LLMIntentClassifier
from reminderbot.services.calendar_service import CalendarService
from reminderbot.services.message_service import NotificationMessageService
from reminderbot.services.notification_service import NotificationService
from reminderbot.services.todo_service import TodoService
from reminderbot.shared.config import Settings
from reminderbot.shared.database import create_engine, create_session_factory, init_db
from reminderbot.shared.schemas.common import HealthResponse
from reminderbot.tasks.calendar_loop import calendar_loop
from reminderbot.tasks.expiry_loop import expiry_loop
from reminderbot.tasks.notification_loop import notification_loop
from reminderbot.tasks.runner import TaskRunner
from reminderbot.tasks.todo_loop import todo_loop

logger = structlog.get_logger()


def build_completion_client(settings: Settings) -> CompletionClient | None:
    if not settings.openai_api_key:
        logger.warning("openai_api_key_not_set", fallback="heuristic routing only")
        return None
    return OpenAICompletionClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
        max_attempts=settings.llm_max_attempts,
    )


def build_classifier(settings: Settings, completion: CompletionClient | None) -> IntentClassifier:
    if completion is None:
        return HeuristicClassifier(todo_enabled=settings.enable_todo_intent)
    return LLMIntentClassifier(
        completion,
        timeout=settings.llm_timeout_seconds,
        todo_enabled=settings.enable_todo_intent,
        tz=settings.timezone,
    )


class Runtime:
    """Builds every component once and runs the worker and loops.

    Pass *chat* to run without a Discord connection (tests, dry runs).
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        chat: ChatClient | None = None,
        completion: CompletionClient | None = None,
        engine: AsyncEngine | None = None,
    ):
        self.settings = settings
        self.pending_ttl = timedelta(minutes=settings.pending_ttl_minutes)

        self._owns_engine = session_factory is None and engine is None
        if session_factory is None:
            engine = engine or create_engine(settings.database_url)
            session_factory = create_session_factory(engine)
        self.engine = engine
        self.session_factory = session_factory

        self.completion = completion if completion is not None else build_completion_client(settings)
        self.bus = EventBus(settings.event_bus_capacity, settings.publish_timeout_seconds)
        self.store = PendingActionStore(ttl=self.pending_ttl)
        self.classifier = build_classifier(settings, self.completion)

        self.notifications = NotificationService(session_factory, settings.lead_minutes)
        self.todos = TodoService(session_factory)
        self.calendar = CalendarService(session_factory)
        self.messages = NotificationMessageService(
            self.completion, timeout=settings.llm_timeout_seconds, tz=settings.timezone
        )
        self.drafts = DraftBuilder(
            self.completion, timeout=settings.llm_timeout_seconds, tz=settings.timezone
        )

        self.interactions = InteractionHandler(
            self.bus, self.todos if settings.enable_todo_intent else None
        )
        self.bot: ReminderDiscordBot | None = None
        if chat is None:
            self.bot = ReminderDiscordBot(settings, self.interactions)
            chat = DiscordChatClient(self.bot, view_timeout=self.pending_ttl.total_seconds())
        self.chat = chat

        self.flow = NotifyFlow(
            classifier=self.classifier,
            store=self.store,
            chat=self.chat,
            drafts=self.drafts,
            notifications=self.notifications,
            todos=self.todos if settings.enable_todo_intent else None,
            tz=settings.timezone,
        )
        self.worker = EventWorker(self.bus, self.flow, self.chat)
        self.runner = TaskRunner()
        self._bot_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self.engine is not None:
            await init_db(self.engine)

        s = self.settings
        stop = self.runner.stop
        self.runner.spawn("event_worker", self.worker.run())
        self.runner.spawn(
            "notification_loop",
            notification_loop(
                self.notifications,
                self.messages,
                self.chat,
                stop,
                interval=s.notification_loop_interval_seconds,
            ),
        )
        self.runner.spawn(
            "calendar_loop",
            calendar_loop(
                self.calendar,
                self.chat,
                stop,
                interval=s.calendar_loop_interval_seconds,
                lead_minutes=s.calendar_lead_minutes,
                tz=s.timezone,
            ),
        )
        if s.enable_todo_intent:
            self.runner.spawn(
                "todo_loop",
                todo_loop(self.todos, self.chat, stop, cron_expr=s.todo_summary_cron, tz=s.timezone),
            )
        self.runner.spawn(
            "expiry_loop",
            expiry_loop(
                self.store,
                self.bus,
                stop,
                ttl=self.pending_ttl,
                interval=s.pending_sweep_interval_seconds,
            ),
        )

        if self.bot is not None:
            if s.discord_client_secret:
                self._bot_task = asyncio.create_task(self._run_bot(), name="discord_bot")
            else:
                logger.error("discord_token_not_set")

        logger.info("runtime_started")

    async def _run_bot(self) -> None:
        try:
            logger.info("connecting_to_discord")
            await self.bot.start(self.settings.discord_client_secret)
        except LoginFailure:
            logger.error("invalid_discord_token")
        except PrivilegedIntentsRequired:
            logger.error("privileged_intents_missing")
        except Exception:
            logger.exception("discord_bot_crashed")

    async def stop(self) -> None:
        """Close the bus, let the worker drain, stop the loops, then disconnect."""
        self.bus.close()
        await self.runner.shutdown()

        if self.bot is not None and not self.bot.is_closed():
            await self.bot.close()
        if self._bot_task is not None:
            await asyncio.gather(self._bot_task, return_exceptions=True)

        if self._owns_engine and self.engine is not None:
            await self.engine.dispose()
        logger.info("runtime_stopped")

    def health(self) -> HealthResponse:
        return HealthResponse(
            status="ok",
            worker_running=self.worker.running,
            queue_depth=self.bus.qsize(),
            pending_actions=len(self.store),
        )
