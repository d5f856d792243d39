"""Discord message splitting and component id parsing."""

from __future__ import annotations

# Discord rejects messages longer than this
MESSAGE_LIMIT = 2000


def split_message(content: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split *content* into chunks Discord will accept, preferring line breaks."""
    chunks = []
    while len(content) > limit:
        split_at = content.rfind("\n", 0, limit)
        if split_at <= 0:
            split_at = content.rfind(" ", 0, limit)
        if split_at <= 0:
            split_at = limit

        chunks.append(content[:split_at])
        content = content[split_at:].lstrip()

    if content:
        chunks.append(content)
    return chunks


def parse_custom_id(custom_id: str) -> tuple[str, str] | None:
    """``"action_confirm:<id>"`` -> ``("action_confirm", "<id>")``."""
    action, sep, request_id = custom_id.partition(":")
    if not sep or not action or not request_id.strip():
        return None
    return action, request_id.strip()
