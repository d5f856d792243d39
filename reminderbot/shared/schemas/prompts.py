"""Schemas for interactive prompts rendered by the chat client."""

from __future__ import annotations

from pydantic import BaseModel

# custom_id prefixes; the request id follows the colon
CONFIRM_ACTION = "action_confirm"
CANCEL_ACTION = "action_cancel"
CONTEXT_ACTION = "action_context"
CONTEXT_MODAL = "action_context_modal"


class PromptAction(BaseModel):
    """A button attached to a chat message."""

    custom_id: str  # "<action>:<request_id>"
    label: str
    style: str = "secondary"  # primary | secondary | success | danger


def make_custom_id(action: str, request_id: str) -> str:
    return f"{action}:{request_id}"


def pending_actions(request_id: str) -> list[PromptAction]:
    """Buttons shown under a notification awaiting confirmation."""
    return [
        PromptAction(
            custom_id=make_custom_id(CONFIRM_ACTION, request_id),
            label="Confirm date/time",
            style="success",
        ),
        PromptAction(
            custom_id=make_custom_id(CONTEXT_ACTION, request_id),
            label="Add context",
            style="primary",
        ),
        PromptAction(
            custom_id=make_custom_id(CANCEL_ACTION, request_id),
            label="Cancel",
            style="danger",
        ),
    ]
