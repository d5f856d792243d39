"""Notification delivery model: one row per scheduled send."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reminderbot.shared.models.base import Base, UTCDateTime


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    # Deliveries created from the same confirmation share a request id
    request_id: Mapped[str | None] = mapped_column(String, default=None, index=True)

    # What to say
    content: Mapped[str] = mapped_column(Text, nullable=False)
    event_time: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)

    # Where to send it
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    channel_id: Mapped[str] = mapped_column(String, nullable=False)

    # Schedule
    deliver_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String, default="pending")  # pending | delivered
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)
