"""Prompt templates for each kind of completion the bot asks for."""

from __future__ import annotations

from datetime import datetime, timezone

DEFAULT_TIMEZONE = "America/New_York"

INTENT_ROUTER = "intent_router"
NOTIFICATION = "notification"
NOTIFICATION_CORRECTION = "notification_correction"
NOTIFICATION_MESSAGE = "notification_message"

_JSON_ONLY = "Reply ONLY with a single JSON object, with no markdown, no backticks, and no extra text."

SYSTEM_PROMPTS: dict[str, str] = {
    INTENT_ROUTER: f"You are a strict JSON intent router. {_JSON_ONLY}",
    NOTIFICATION: (
        "You are a strict JSON notification extraction engine. "
        f"{_JSON_ONLY} Keep any explicit month and day the user wrote; "
        "only fill in a missing year or time."
    ),
    NOTIFICATION_CORRECTION: (
        "You are a strict JSON notification correction engine. "
        f"{_JSON_ONLY}"
    ),
    NOTIFICATION_MESSAGE: (
        "You are a notification message formatter. "
        "Reply with plain text only (no JSON, no markdown, no quotes)."
    ),
}

_TEMPLATES: dict[str, str] = {
    INTENT_ROUTER: """\
You are an intent router for a notification bot.
Current date and time (UTC): {now}
User timezone: {tz}
Classify the user's message into exactly one intent:
- notification: the request carries an explicit or implicit time or date
  ("tomorrow", "next week", a weekday, a month, "at 5pm")
- todolist: a task to remember without a time ("finish", "check", "do")
- unknown: unclear, or the action or time is missing
Output ONLY raw JSON with this exact shape:
{{"intent":"notification|todolist|unknown","normalized_text":"<cleaned user text>"}}
User message: "{text}"
""",
    NOTIFICATION: """\
You are a notification extraction engine.
Current date and time (UTC): {now}
User timezone: {tz}
From the user message, extract:
- "content": what to be notified about, without the scheduling words
  ("buy eggs tomorrow" -> "buy eggs", "notify me to call mom at 5" -> "call mom")
- "time": an RFC3339 datetime in the user's timezone
Rules:
- An explicit date ("December 6th") keeps that month and day, at noon local time
  unless a time is given. A missing year means the next occurrence on or after today.
- Relative times ("in two weeks", "tomorrow at 3pm") are computed from now.
- "Saturday" / "this Saturday" is the next such weekday on or after today;
  "next Saturday" is the one in the following week.
- Vague times ("soon", "later") mean exactly 24 hours from now.
- Corrections and context notes only adjust the time; never copy them into "content".
Output ONLY raw JSON with this exact shape:
{{"content":"<string>","time":"<RFC3339 datetime>"}}
User message: "{text}"
""",
    NOTIFICATION_CORRECTION: """\
You are a notification correction engine.
Current date and time (UTC): {now}
User timezone: {tz}
Given the original request and a correction note, output the corrected notification.
- The correction note is not notification content; it fixes the date/time or clarifies intent.
- Keep the original content unless the note explicitly changes it.
Output ONLY raw JSON with this exact shape:
{{"content":"<string>","time":"<RFC3339 datetime>"}}
{text}
""",
    NOTIFICATION_MESSAGE: """\
Current date and time (UTC): {now}
Write a short, natural notification message (1-2 sentences) addressed to the
user as "you". Mention the event time and the content; if hours remaining is
given, mention it in a friendly way. No markdown, lists, JSON or quotes.
Structured input:
{text}
""",
}


def build_prompt(
    prompt_type: str,
    text: str,
    *,
    now: datetime | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> tuple[str, str]:
    """Return ``(system, user)`` messages for *prompt_type*."""
    if prompt_type not in _TEMPLATES:
        raise ValueError(f"Not a valid base prompt: {prompt_type}")
    now = now or datetime.now(timezone.utc)
    user = _TEMPLATES[prompt_type].format(now=now.isoformat(), tz=tz, text=text)
    return SYSTEM_PROMPTS[prompt_type], user


def correction_text(original: str, context: str) -> str:
    """Combine an original request with a correction note."""
    context = context.strip()
    if not context:
        return f'Original request: "{original}"'
    return f'Original request: "{original}"\nCorrection note: {context}'
