"""Task list store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from mindpal.backend.types import eq
from mindpal.errors import ValidationError, validation_choice, validation_required
from mindpal.models import Task
from mindpal.notify import NoticeLevel
from mindpal.resources.base import RemoteResource, ResourceContext, first_row

if TYPE_CHECKING:
    from mindpal.resources.notifications import NotificationStore

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")
REMINDER_LEAD = timedelta(minutes=30)
EDITABLE_FIELDS = frozenset(
    {"title", "description", "completed", "priority", "category", "due_date", "reminder_enabled", "reminder_time"}
)


def _serialize(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in values.items()}


class TaskStore(RemoteResource):
    """The signed-in user's tasks, newest first."""

    table = "tasks"

    def __init__(self, context: ResourceContext, notifications: NotificationStore | None = None) -> None:
        super().__init__(context)
        self._notifications = notifications
        self.tasks: tuple[Task, ...] = ()

    def reset(self) -> None:
        self.tasks = ()

    @property
    def pending(self) -> tuple[Task, ...]:
        return tuple(t for t in self.tasks if not t.completed)

    @property
    def completed(self) -> tuple[Task, ...]:
        return tuple(t for t in self.tasks if t.completed)

    def get(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    async def load(self) -> bool:
        user = self.user

        async def fetch():
            return await self._client.select(
                self.table,
                filters=[eq("user_id", user.id)],
                order="created_at",
                ascending=False,
            )

        def apply(rows: Any) -> None:
            self.tasks = tuple(Task.model_validate(row) for row in rows or [])

        return await self._load("load", fetch, apply, error_message="Failed to load tasks")

    async def create(
        self,
        title: str,
        description: str | None = None,
        *,
        priority: str = "medium",
        category: str = "personal",
        due_date: datetime | None = None,
        reminder_enabled: bool = False,
    ) -> Task | None:
        """Add a task; with a due date and reminders on, schedule a reminder."""
        title = title.strip()
        if not title:
            raise validation_required("title")
        if priority not in PRIORITIES:
            raise validation_choice("priority", priority, PRIORITIES)
        user = self._require_user()

        reminder_time = due_date - REMINDER_LEAD if reminder_enabled and due_date else None
        row = _serialize(
            {
                "user_id": user.id,
                "title": title,
                "description": description or None,
                "priority": priority,
                "category": category,
                "due_date": due_date,
                "reminder_enabled": reminder_enabled,
                "reminder_time": reminder_time,
            }
        )
        ok, data = await self._write(
            "create",
            lambda: self._client.insert(self.table, [row]),
            success_message="Task added successfully!",
            error_message="Failed to add task",
        )
        created = first_row(data) if ok else None
        if created is None:
            return None
        task = Task.model_validate(created)
        if self._owns(user.id):
            self.tasks = (task, *self.tasks)

        if reminder_time is not None and self._notifications is not None:
            await self._notifications.schedule_task_reminder(task)
        return task

    async def update(self, task_id: str, **changes: Any) -> Task | None:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise validation_choice("field", sorted(unknown)[0], tuple(sorted(EDITABLE_FIELDS)))
        if "title" in changes and not str(changes["title"]).strip():
            raise validation_required("title")
        if "priority" in changes and changes["priority"] not in PRIORITIES:
            raise validation_choice("priority", changes["priority"], PRIORITIES)
        user = self._require_user()

        values = _serialize({**changes, "updated_at": datetime.now().astimezone()})
        ok, data = await self._write(
            "update",
            lambda: self._client.update(self.table, values, [eq("id", task_id)]),
            error_message="Failed to update task",
        )
        updated = first_row(data) if ok else None
        if updated is None:
            return None
        task = Task.model_validate(updated)
        if self._owns(user.id):
            self.tasks = tuple(task if t.id == task_id else t for t in self.tasks)
        return task

    async def toggle_complete(self, task_id: str) -> Task | None:
        current = self.get(task_id)
        if current is None:
            raise ValidationError(f"Unknown task: {task_id}", field="task_id", value=task_id)
        task = await self.update(task_id, completed=not current.completed)
        if task is not None:
            self._notify(NoticeLevel.SUCCESS, "Task completed! 🎉" if task.completed else "Task marked incomplete")
        return task

    async def delete(self, task_id: str) -> bool:
        user = self._require_user()
        ok, _ = await self._write(
            "delete",
            lambda: self._client.delete(self.table, [eq("id", task_id)]),
            success_message="Task deleted",
            error_message="Failed to delete task",
        )
        if ok and self._owns(user.id):
            self.tasks = tuple(t for t in self.tasks if t.id != task_id)
        return ok
