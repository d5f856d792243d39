"""Tests for the OpenAI completion client."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import BadRequestError

from reminderbot.core.llm.client import OpenAICompletionClient
from reminderbot.shared.errors import CompletionError, CompletionTimeout


def _reply(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def _client(create: AsyncMock, **kwargs) -> OpenAICompletionClient:
    openai = MagicMock()
    openai.chat.completions.create = create
    return OpenAICompletionClient(api_key="sk-test", client=openai, **kwargs)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("reminderbot.core.llm.client.asyncio.sleep", AsyncMock())


class TestOpenAICompletionClient:
    @pytest.mark.asyncio
    async def test_sends_system_and_user_messages(self):
        create = AsyncMock(return_value=_reply('{"intent": "notification"}'))
        client = _client(create, model="gpt-4o-mini")

        text = await client.complete("remind me", system="be strict")

        assert text == '{"intent": "notification"}'
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [
            {"role": "system", "content": "be strict"},
            {"role": "user", "content": "remind me"},
        ]

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        create = AsyncMock(side_effect=[RuntimeError("503"), _reply("ok")])
        client = _client(create, max_attempts=2)

        assert await client.complete("hi") == "ok"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        create = AsyncMock(side_effect=RuntimeError("503"))
        client = _client(create, max_attempts=3)

        with pytest.raises(CompletionError, match="503"):
            await client.complete("hi")
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retried(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = BadRequestError(
            "invalid model", response=httpx.Response(400, request=request), body=None
        )
        create = AsyncMock(side_effect=error)
        client = _client(create, max_attempts=3)

        with pytest.raises(CompletionError):
            await client.complete("hi")
        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(**kwargs):
            await asyncio.Event().wait()

        client = _client(AsyncMock(side_effect=slow))

        with pytest.raises(CompletionTimeout):
            await client.complete("hi", timeout=0.01)

    @pytest.mark.asyncio
    async def test_empty_message(self):
        client = _client(AsyncMock(return_value=_reply(None)))

        with pytest.raises(CompletionError):
            await client.complete("hi")
