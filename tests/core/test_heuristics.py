"""Tests for the keyword rules behind the fallback classifier.

Each temporal rule is checked on its own, then ``route_heuristic`` as a whole.
"""

from __future__ import annotations

import pytest

from reminderbot.core.routing.heuristics import (
    has_am_pm,
    has_clock_or_date,
    has_month,
    has_relative_day,
    has_relative_phrase,
    has_time_tokens,
    has_todo_tokens,
    has_weekday,
    route_heuristic,
)


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------


class TestTimeRules:
    @pytest.mark.parametrize("text", ["today", "call tomorrow", "tonight", "this morning", "afternoon", "evening walk"])
    def test_relative_days(self, text):
        assert has_relative_day(text)

    def test_relative_day_needs_whole_word(self):
        assert not has_relative_day("todays")

    @pytest.mark.parametrize("text", ["monday", "gym on fridays", "sunday brunch"])
    def test_weekdays(self, text):
        assert has_weekday(text)

    @pytest.mark.parametrize("text", ["march 3", "due in december", "january"])
    def test_months(self, text):
        assert has_month(text)

    @pytest.mark.parametrize("text", ["next week", "this friday", "at noon", "in two weeks", "on the 5th"])
    def test_relative_phrases(self, text):
        assert has_relative_phrase(text)

    def test_preposition_inside_word_does_not_count(self):
        assert not has_relative_phrase("remind me to file taxes")

    @pytest.mark.parametrize("text", ["5:30", "at 17 : 45", "3/14", "2026/4"])
    def test_clock_or_date(self, text):
        assert has_clock_or_date(text)

    def test_plain_number_is_not_a_time(self):
        assert not has_clock_or_date("buy 12 eggs")

    @pytest.mark.parametrize("text", ["5pm", "7 am", "9 p.m.", "call at 10am"])
    def test_am_pm(self, text):
        assert has_am_pm(text)

    @pytest.mark.parametrize("text", ["spam filter", "install npm", "amazing"])
    def test_am_pm_inside_words_does_not_count(self, text):
        assert not has_am_pm(text)


class TestTodoRule:
    @pytest.mark.parametrize(
        "text",
        ["todo: laundry", "add to-do", "things to do", "task list", "finish the report",
         "check the mail", "do laundry", "complete the form"],
    )
    def test_todo_vocabulary(self, text):
        assert has_todo_tokens(text)

    def test_no_todo_vocabulary(self):
        assert not has_todo_tokens("buy milk and eggs")


# ---------------------------------------------------------------------------
# route_heuristic
# ---------------------------------------------------------------------------


class TestRouteHeuristic:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", "unknown"),
            ("   ", "unknown"),
            ("blah", "unknown"),
            ("buy milk and eggs", "unknown"),
            ("remind me to file taxes", "unknown"),
            ("finish the report", "todo"),
            ("call mom 5pm", "notification"),
            ("dentist next tuesday", "notification"),
            ("pay rent on the 1st", "notification"),
            ("Buy Eggs TOMORROW", "notification"),
        ],
    )
    def test_routes(self, text, expected):
        assert route_heuristic(text) == expected

    def test_time_beats_todo_vocabulary(self):
        assert route_heuristic("finish the report by friday") == "notification"

    def test_todo_branch_can_be_disabled(self):
        assert route_heuristic("finish the report", todo_enabled=False) == "unknown"

    def test_has_time_tokens_is_case_insensitive(self):
        assert has_time_tokens("MEET ON MONDAY")
