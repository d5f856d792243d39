"""SQLAlchemy models."""

from reminderbot.shared.models.base import Base
from reminderbot.shared.models.calendar_event import CalendarEvent
from reminderbot.shared.models.notification import Notification
from reminderbot.shared.models.todo import TodoItem

__all__ = [
    "Base",
    "CalendarEvent",
    "Notification",
    "TodoItem",
]
