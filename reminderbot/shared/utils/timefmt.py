"""Time formatting and parsing helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_time(value: datetime | None, tz: str = "America/New_York") -> str:
    """Render *value* in the user's timezone, e.g. ``2026-04-15 17:00 EDT``."""
    if value is None:
        return "now"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d %H:%M %Z")


def parse_time(value: str, tz: str = "America/New_York") -> datetime:
    """Parse an ISO/RFC3339 string. Naive values are read in *tz*; result is UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(tz))
    return parsed.astimezone(timezone.utc)
