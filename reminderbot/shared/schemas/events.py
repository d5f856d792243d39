"""Domain events carried by the event bus.

Every event is frozen once constructed. ``DomainEvent`` is a closed union
discriminated on ``kind``; the event worker keeps one handler per member.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class NotifyRequested(_Event):
    """A user asked ``/notify`` for something."""

    kind: Literal["notify_requested"] = "notify_requested"
    text: str
    user_id: str
    channel_id: str


class PendingConfirmed(_Event):
    """The Confirm button was pressed on a pending notification."""

    kind: Literal["pending_confirmed"] = "pending_confirmed"
    request_id: str
    user_id: str
    channel_id: str | None = None


class PendingCancelled(_Event):
    """The Cancel button was pressed on a pending notification."""

    kind: Literal["pending_cancelled"] = "pending_cancelled"
    request_id: str
    user_id: str
    channel_id: str | None = None


class ContextSubmitted(_Event):
    """A correction note was submitted for a pending notification."""

    kind: Literal["context_submitted"] = "context_submitted"
    request_id: str
    user_id: str
    context: str
    channel_id: str | None = None


class PendingExpired(_Event):
    """The expiry sweep dropped a pending notification nobody answered."""

    kind: Literal["pending_expired"] = "pending_expired"
    request_id: str
    user_id: str
    channel_id: str


DomainEvent = Annotated[
    Union[
        NotifyRequested,
        PendingConfirmed,
        PendingCancelled,
        ContextSubmitted,
        PendingExpired,
    ],
    Field(discriminator="kind"),
]

EVENT_TYPES: tuple[type[BaseModel], ...] = get_args(get_args(DomainEvent)[0])

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_event(data: dict | str | bytes) -> BaseModel:
    """Rebuild a domain event from its dict or JSON form."""
    if isinstance(data, (str, bytes)):
        return _event_adapter.validate_json(data)
    return _event_adapter.validate_python(data)
