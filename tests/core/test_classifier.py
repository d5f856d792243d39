"""Tests for the attempt-then-fallback intent classifier."""

from __future__ import annotations

import json

import pytest

from reminderbot.core.routing import HeuristicClassifier, Intent, LLMIntentClassifier
from reminderbot.core.routing.classifier import parse_router_payload
from reminderbot.shared.errors import ClassificationMalformed, CompletionError, CompletionTimeout


def _reply(intent: str, normalized: str = "") -> str:
    return json.dumps({"intent": intent, "normalized_text": normalized})


# ---------------------------------------------------------------------------
# parse_router_payload
# ---------------------------------------------------------------------------


class TestParseRouterPayload:
    def test_notification(self):
        result = parse_router_payload(_reply("notification", "file taxes april 15"), "orig")
        assert result.intent is Intent.NOTIFICATION
        assert result.normalized_text == "file taxes april 15"

    @pytest.mark.parametrize("label", ["todo", "todolist", "TodoList"])
    def test_todo_labels(self, label):
        assert parse_router_payload(_reply(label), "x").intent is Intent.TODO

    def test_unknown_label_is_unknown(self):
        assert parse_router_payload(_reply("weather"), "x").intent is Intent.UNKNOWN

    def test_empty_normalized_text_uses_original(self):
        assert parse_router_payload(_reply("unknown", "  "), " blah ").normalized_text == "blah"

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"normalized_text": "x"}', '"notification"'])
    def test_malformed(self, raw):
        with pytest.raises(ClassificationMalformed):
            parse_router_payload(raw, "x")


# ---------------------------------------------------------------------------
# LLMIntentClassifier
# ---------------------------------------------------------------------------


class TestLLMIntentClassifier:
    @pytest.mark.asyncio
    async def test_uses_remote_answer(self, completion):
        completion.replies = [_reply("notification", "call mom")]
        classifier = LLMIntentClassifier(completion, timeout=1.0)

        result = await classifier.route("pls call mom")

        assert result.intent is Intent.NOTIFICATION
        assert result.normalized_text == "call mom"
        assert "pls call mom" in completion.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_empty_text_is_unknown_without_remote_call(self, completion):
        classifier = LLMIntentClassifier(completion, timeout=1.0)
        assert await classifier.classify("   ") is Intent.UNKNOWN
        assert completion.calls == []

    @pytest.mark.asyncio
    async def test_malformed_reply_falls_back_to_heuristic(self, completion):
        completion.replies = ["Sure! It's a notification."]
        classifier = LLMIntentClassifier(completion, timeout=1.0)
        assert await classifier.classify("call mom 5pm") is Intent.NOTIFICATION

    @pytest.mark.asyncio
    async def test_remote_error_falls_back_to_heuristic(self, completion):
        completion.replies = [CompletionError("boom")]
        classifier = LLMIntentClassifier(completion, timeout=1.0)
        assert await classifier.classify("finish the report") is Intent.TODO

    @pytest.mark.asyncio
    async def test_remote_timeout_falls_back_to_heuristic(self, completion):
        completion.replies = [CompletionTimeout("slow")]
        classifier = LLMIntentClassifier(completion, timeout=1.0)
        assert await classifier.classify("blah") is Intent.UNKNOWN

    @pytest.mark.asyncio
    async def test_slow_remote_is_cut_off(self, completion):
        completion.delay = 1.0
        completion.default = _reply("todo")
        classifier = LLMIntentClassifier(completion, timeout=0.05)
        assert await classifier.classify("meet at 5:30") is Intent.NOTIFICATION

    @pytest.mark.asyncio
    async def test_todo_disabled_maps_to_unknown(self, completion):
        completion.replies = [_reply("todolist", "finish the report")]
        classifier = LLMIntentClassifier(completion, timeout=1.0, todo_enabled=False)
        assert await classifier.classify("finish the report") is Intent.UNKNOWN

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text",
        ["", "blah", "call mom 5pm", "finish the report", "🙂", "x" * 5000, "at", "3/"],
    )
    async def test_never_raises_when_remote_fails(self, completion, text):
        completion.default = None  # every call raises CompletionError
        classifier = LLMIntentClassifier(completion, timeout=1.0)
        assert await classifier.classify(text) in set(Intent)


class TestHeuristicClassifier:
    @pytest.mark.asyncio
    async def test_route(self):
        result = await HeuristicClassifier().route("  call mom 5pm ")
        assert result.intent is Intent.NOTIFICATION
        assert result.normalized_text == "call mom 5pm"

    @pytest.mark.asyncio
    async def test_todo_disabled(self):
        assert await HeuristicClassifier(todo_enabled=False).classify("do laundry") is Intent.UNKNOWN
