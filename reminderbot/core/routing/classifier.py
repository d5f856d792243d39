"""Intent classifiers: an LLM attempt with a deterministic heuristic fallback."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from enum import Enum

import structlog
from pydantic import BaseModel, ValidationError

from reminderbot.core.llm import prompts
from reminderbot.core.llm.client import CompletionClient
from reminderbot.core.routing.heuristics import route_heuristic
from reminderbot.shared.errors import (
    ClassificationMalformed,
    ClassificationTimeout,
    CompletionTimeout,
)

logger = structlog.get_logger()


class Intent(str, Enum):
    NOTIFICATION = "notification"
    TODO = "todo"
    UNKNOWN = "unknown"


# Labels the remote router may answer with
_LABELS: dict[str, Intent] = {
    "notification": Intent.NOTIFICATION,
    "todo": Intent.TODO,
    "todolist": Intent.TODO,
    "unknown": Intent.UNKNOWN,
}


class IntentResult(BaseModel):
    intent: Intent
    normalized_text: str


class _RouterPayload(BaseModel):
    intent: str
    normalized_text: str = ""


class IntentClassifier(ABC):
    """Turns free text into an ``Intent``. Never raises."""

    @abstractmethod
    async def route(self, text: str) -> IntentResult:
        ...

    async def classify(self, text: str) -> Intent:
        return (await self.route(text)).intent


class HeuristicClassifier(IntentClassifier):
    """Keyword rules only; used directly when no LLM key is configured."""

    def __init__(self, todo_enabled: bool = True):
        self.todo_enabled = todo_enabled

    async def route(self, text: str) -> IntentResult:
        return self.route_sync(text)

    def route_sync(self, text: str) -> IntentResult:
        label = route_heuristic(text, todo_enabled=self.todo_enabled)
        return IntentResult(intent=_LABELS[label], normalized_text=text.strip())


class LLMIntentClassifier(IntentClassifier):
    """Ask the completion client first, fall back to the heuristic on any failure."""

    def __init__(
        self,
        completion: CompletionClient,
        timeout: float = 15.0,
        todo_enabled: bool = True,
        tz: str = prompts.DEFAULT_TIMEZONE,
    ):
        self.completion = completion
        self.timeout = timeout
        self.todo_enabled = todo_enabled
        self.tz = tz
        self.fallback = HeuristicClassifier(todo_enabled=todo_enabled)

    async def route(self, text: str) -> IntentResult:
        if not text.strip():
            return IntentResult(intent=Intent.UNKNOWN, normalized_text="")

        try:
            result = await self._route_remote(text)
        except Exception as e:
            # ClassificationTimeout, ClassificationMalformed or a failing client
            logger.warning(
                "intent_classifier_fallback",
                reason=type(e).__name__,
                error=str(e),
            )
            return self.fallback.route_sync(text)

        if result.intent is Intent.TODO and not self.todo_enabled:
            result = IntentResult(intent=Intent.UNKNOWN, normalized_text=result.normalized_text)
        logger.info("intent_classified", intent=result.intent.value, source="llm")
        return result

    async def _route_remote(self, text: str) -> IntentResult:
        system, prompt = prompts.build_prompt(prompts.INTENT_ROUTER, text, tz=self.tz)
        try:
            raw = await asyncio.wait_for(
                self.completion.complete(prompt, system=system, timeout=self.timeout),
                self.timeout,
            )
        except (CompletionTimeout, asyncio.TimeoutError) as e:
            raise ClassificationTimeout(str(e)) from e
        return parse_router_payload(raw, text)


def parse_router_payload(raw: str, original_text: str) -> IntentResult:
    """Parse the router's JSON reply.

    Labels outside the known vocabulary become ``Intent.UNKNOWN``; a reply
    that is not the expected JSON object raises ``ClassificationMalformed``.
    """
    try:
        payload = _RouterPayload.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise ClassificationMalformed(f"unparseable router payload: {raw[:200]!r}") from e

    intent = _LABELS.get(payload.intent.strip().lower(), Intent.UNKNOWN)
    normalized = payload.normalized_text.strip() or original_text.strip()
    return IntentResult(intent=intent, normalized_text=normalized)
