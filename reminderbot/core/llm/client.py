"""Completion client interface and the OpenAI implementation."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import structlog
from openai import AsyncOpenAI, BadRequestError

from reminderbot.shared.errors import CompletionError, CompletionTimeout

logger = structlog.get_logger()


class CompletionClient(ABC):
    """Abstract text-completion collaborator."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return the model's reply to *prompt*.

        Raises ``CompletionTimeout`` when *timeout* elapses and
        ``CompletionError`` for any other failure.
        """
        ...


class OpenAICompletionClient(CompletionClient):
    """Chat-completions client for OpenAI models (gpt-4o-mini by default)."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 15.0,
        max_attempts: int = 2,
        max_tokens: int = 1500,
        temperature: float = 0.2,
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        timeout: float | None = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        limit = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(self._complete_with_retry(messages), limit)
        except asyncio.TimeoutError as e:
            logger.warning("openai_completion_timeout", timeout=limit)
            raise CompletionTimeout(f"completion timed out after {limit}s") from e

    async def _complete_with_retry(self, messages: list[dict]) -> str:
        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
                break
            except BadRequestError as e:
                # 400 = bad payload, retrying won't help
                raise CompletionError(str(e)) from e
            except Exception as e:
                last_error = e
                logger.warning("openai_api_error", attempt=attempt, error=str(e))
                if attempt < self.max_attempts - 1:
                    await asyncio.sleep(2**attempt)
        else:
            raise CompletionError(str(last_error)) from last_error

        if not response.choices:
            raise CompletionError("No response from OpenAI")
        content = response.choices[0].message.content
        if content is None:
            raise CompletionError("OpenAI returned an empty message")
        return content
