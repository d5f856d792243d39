"""Per-user todo lists."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from reminderbot.shared.models.todo import TodoItem
from reminderbot.shared.utils.timefmt import utcnow

logger = structlog.get_logger()


class TodoService:
    """Open items are ordered by creation time and addressed by 1-based index."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create(self, user_id: str, content: str) -> TodoItem:
        item = TodoItem(id=uuid.uuid4(), user_id=user_id, content=content.strip())
        async with self.session_factory() as session:
            session.add(item)
            await session.commit()
        logger.info("todo_created", user_id=user_id, todo_id=str(item.id))
        return item

    async def list_open(self, user_id: str) -> list[TodoItem]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TodoItem)
                .where(TodoItem.user_id == user_id, TodoItem.completed_at.is_(None))
                .order_by(TodoItem.created_at, TodoItem.id)
            )
            return list(result.scalars().all())

    async def complete(self, user_id: str, index: int) -> TodoItem | None:
        """Mark the *index*-th open item done. ``None`` if there is no such item."""
        if index < 1:
            return None
        async with self.session_factory() as session:
            result = await session.execute(
                select(TodoItem)
                .where(TodoItem.user_id == user_id, TodoItem.completed_at.is_(None))
                .order_by(TodoItem.created_at, TodoItem.id)
                .offset(index - 1)
                .limit(1)
            )
            item = result.scalar_one_or_none()
            if item is None:
                return None
            item.completed_at = utcnow()
            await session.commit()
        logger.info("todo_completed", user_id=user_id, todo_id=str(item.id))
        return item

    async def clear_completed(self, user_id: str) -> int:
        """Delete the user's completed items; returns how many were removed."""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(TodoItem).where(
                    TodoItem.user_id == user_id, TodoItem.completed_at.is_not(None)
                )
            )
            await session.commit()
        return result.rowcount or 0

    async def open_by_user(self) -> dict[str, list[TodoItem]]:
        """All open items grouped by user, each list in index order."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TodoItem)
                .where(TodoItem.completed_at.is_(None))
                .order_by(TodoItem.user_id, TodoItem.created_at, TodoItem.id)
            )
            items = result.scalars().all()

        by_user: dict[str, list[TodoItem]] = {}
        for item in items:
            by_user.setdefault(item.user_id, []).append(item)
        return by_user


def format_todo_list(items: list[TodoItem]) -> str:
    return "\n".join(f"{i}) {item.content}" for i, item in enumerate(items, start=1))
