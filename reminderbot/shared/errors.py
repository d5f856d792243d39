"""Exception hierarchy shared by the core, the loops and the interaction layer."""

from __future__ import annotations


class ReminderBotError(Exception):
    """Base class for every error raised by reminderbot."""


class ClassificationTimeout(ReminderBotError):
    """The remote classifier did not answer in time. Recovered by the heuristic."""


class ClassificationMalformed(ReminderBotError):
    """The remote classifier answered with something that is not a routing payload."""


class CompletionError(ReminderBotError):
    """A language-model completion call failed."""


class CompletionTimeout(CompletionError):
    """A language-model completion call exceeded its timeout."""


class DraftExtractionError(ReminderBotError):
    """Could not turn a request into notification content and time."""


class StoreConflict(ReminderBotError):
    """A pending action with this request id already exists."""

    def __init__(self, request_id: str):
        super().__init__(f"pending action {request_id} already exists")
        self.request_id = request_id


class InvalidTransition(ReminderBotError):
    """A state change that the notify flow does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(f"cannot move from {current} to {target}")
        self.current = current
        self.target = target


class BusCapacityExceeded(ReminderBotError):
    """The event bus stayed full for the whole publish timeout."""


class BusClosed(ReminderBotError):
    """The event bus has been shut down."""


class RemoteDeliveryFailure(ReminderBotError):
    """The chat platform rejected or failed a send."""


class ExpiredAction(ReminderBotError):
    """The pending action timed out before the user answered."""


# Messages shown to users when an error affects their request
USER_MESSAGES: dict[type[ReminderBotError], str] = {
    StoreConflict: "Something went wrong creating your notification, please try again.",
    BusCapacityExceeded: "I'm busy right now, try again shortly.",
    BusClosed: "I'm shutting down, try again in a moment.",
    ExpiredAction: "This request timed out, please resend /notify.",
}


def user_message(error: Exception) -> str:
    """Return the user-facing text for *error*."""
    for error_type, message in USER_MESSAGES.items():
        if isinstance(error, error_type):
            return message
    return "Sorry, I encountered an error processing your request."
