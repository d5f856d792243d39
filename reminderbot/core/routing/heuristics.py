"""Deterministic keyword rules used when the remote classifier is unavailable.

Each rule is a small predicate over the lower-cased text so it can be tested
on its own. ``route_heuristic`` applies them in order: temporal phrases win
over todo vocabulary, and anything else is unknown.
"""

from __future__ import annotations

import re

RELATIVE_DAY_WORDS = ("today", "tomorrow", "tonight", "morning", "afternoon", "evening")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

TODO_WORDS = ("todo", "to-do", "to do", "task", "finish", "check", "do", "complete")

_RELATIVE_DAY_RE = re.compile(r"\b(?:%s)\b" % "|".join(RELATIVE_DAY_WORDS))
_WEEKDAY_RE = re.compile(r"\b(?:%s)s?\b" % "|".join(WEEKDAYS))
_MONTH_RE = re.compile(r"\b(?:%s)\b" % "|".join(MONTHS))
# "next week", "this friday"
_NEXT_THIS_RE = re.compile(r"\b(?:next|this)\s+\w+")
# "at 5", "in two weeks", "on march 3"
_PREPOSITION_RE = re.compile(r"\b(?:at|in|on)\s+\S")
# "5:30", "3/14"
_CLOCK_OR_DATE_RE = re.compile(r"\d{1,4}\s*[:/]\s*\d{1,2}")
# "5pm", "7 am", "p.m."
_AM_PM_RE = re.compile(r"(?<![a-z])[ap]\.?m\.?(?![a-z])")
_TODO_RE = re.compile(r"\b(?:%s)\b" % "|".join(re.escape(w) for w in TODO_WORDS))


def has_relative_day(lower: str) -> bool:
    return bool(_RELATIVE_DAY_RE.search(lower))


def has_weekday(lower: str) -> bool:
    return bool(_WEEKDAY_RE.search(lower))


def has_month(lower: str) -> bool:
    return bool(_MONTH_RE.search(lower))


def has_relative_phrase(lower: str) -> bool:
    return bool(_NEXT_THIS_RE.search(lower) or _PREPOSITION_RE.search(lower))


def has_clock_or_date(lower: str) -> bool:
    return bool(_CLOCK_OR_DATE_RE.search(lower))


def has_am_pm(lower: str) -> bool:
    return bool(_AM_PM_RE.search(lower))


TIME_RULES = (
    has_relative_day,
    has_weekday,
    has_month,
    has_relative_phrase,
    has_clock_or_date,
    has_am_pm,
)


def has_time_tokens(text: str) -> bool:
    """True if any temporal rule matches *text*."""
    lower = text.lower()
    return any(rule(lower) for rule in TIME_RULES)


def has_todo_tokens(text: str) -> bool:
    """True if *text* reads like a task to remember."""
    return bool(_TODO_RE.search(text.lower()))


def route_heuristic(text: str, *, todo_enabled: bool = True) -> str:
    """Return ``"notification"``, ``"todo"`` or ``"unknown"`` for *text*."""
    normalized = text.strip()
    if not normalized:
        return "unknown"
    if has_time_tokens(normalized):
        return "notification"
    if todo_enabled and has_todo_tokens(normalized):
        return "todo"
    return "unknown"
