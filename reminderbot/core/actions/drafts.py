"""Turn a request (plus an optional correction note) into notification content and time."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel, ValidationError, field_validator

from reminderbot.core.llm import prompts
from reminderbot.core.llm.client import CompletionClient
from reminderbot.shared.errors import CompletionError, DraftExtractionError

logger = structlog.get_logger()

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


class NotificationDraft(BaseModel):
    """What to say and when, as extracted from the user's words."""

    content: str
    # Aware UTC; None means deliver immediately
    time: datetime | None = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content is empty")
        return v

    @field_validator("time", mode="before")
    @classmethod
    def _blank_time_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class DraftBuilder:
    """Asks the completion client for ``{"content", "time"}`` JSON."""

    def __init__(
        self,
        completion: CompletionClient | None,
        timeout: float = 15.0,
        tz: str = prompts.DEFAULT_TIMEZONE,
    ):
        self.completion = completion
        self.timeout = timeout
        self.tz = tz

    async def extract(self, text: str) -> NotificationDraft:
        return await self._run(prompts.NOTIFICATION, text)

    async def correct(self, original: str, context: str) -> NotificationDraft:
        return await self._run(
            prompts.NOTIFICATION_CORRECTION, prompts.correction_text(original, context)
        )

    async def _run(self, prompt_type: str, text: str) -> NotificationDraft:
        if self.completion is None:
            raise DraftExtractionError("no language model is configured")

        system, prompt = prompts.build_prompt(prompt_type, text, tz=self.tz)
        try:
            raw = await self.completion.complete(prompt, system=system, timeout=self.timeout)
        except CompletionError as e:
            logger.warning("draft_completion_failed", prompt_type=prompt_type, error=str(e))
            raise DraftExtractionError(str(e)) from e

        draft = parse_draft(raw, self.tz)
        logger.info(
            "draft_extracted",
            prompt_type=prompt_type,
            has_time=draft.time is not None,
        )
        return draft


def parse_draft(raw: str, tz: str = prompts.DEFAULT_TIMEZONE) -> NotificationDraft:
    """Parse the model's reply. Naive times are read in *tz* and stored as UTC."""
    cleaned = _FENCE_RE.sub("", raw.strip())
    try:
        draft = NotificationDraft.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        raise DraftExtractionError(f"could not read notification from {raw[:200]!r}") from e

    if draft.time is not None:
        when = draft.time
        if when.tzinfo is None:
            when = when.replace(tzinfo=ZoneInfo(tz))
        draft = draft.model_copy(update={"time": when.astimezone(timezone.utc)})
    return draft
