"""Notification and reminder store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta
from typing import Any, get_args

from pydantic import ValidationError as PydanticValidationError

from mindpal.backend.types import eq
from mindpal.errors import ValidationError, validation_choice, validation_required
from mindpal.models import Notification, NotificationSettings, NotificationType, Task
from mindpal.notify import NoticeLevel
from mindpal.resources.base import RemoteResource, ResourceContext, first_row

logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 50
NOTIFICATION_TYPES: tuple[str, ...] = get_args(NotificationType)
DEFAULT_NOTIFICATION_SETTINGS = NotificationSettings()

MOOD_REMINDER_AT = time(9, 0)
DAILY_SUMMARY_AT = time(20, 0)


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_quiet_time(settings: NotificationSettings, moment: datetime) -> bool:
    """Whether ``moment`` (local wall-clock) falls inside the quiet window.

    Both ends are inclusive; a start after the end spans midnight.
    """
    if not settings.quiet_hours_enabled:
        return False
    current = moment.hour * 60 + moment.minute
    start = _minutes(settings.quiet_hours_start)
    end = _minutes(settings.quiet_hours_end)
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


class NotificationStore(RemoteResource):
    """Scheduled notifications plus the user's reminder preferences."""

    table = "notifications"
    task_table = "task_notifications"
    settings_table = "task_notification_settings"

    def __init__(self, context: ResourceContext, clock: Callable[[], datetime] | None = None) -> None:
        super().__init__(context)
        self._clock = clock or (lambda: datetime.now(UTC))
        self.notifications: tuple[Notification, ...] = ()
        self.settings: NotificationSettings = DEFAULT_NOTIFICATION_SETTINGS

    def reset(self) -> None:
        self.notifications = ()
        self.settings = DEFAULT_NOTIFICATION_SETTINGS

    @property
    def unread_count(self) -> int:
        """Unsent notifications whose scheduled time has passed."""
        now = self._clock()
        return sum(1 for n in self.notifications if not n.sent and n.scheduled_for <= now)

    def is_quiet_hours(self, now: datetime | None = None) -> bool:
        moment = now or self._clock().astimezone()
        return is_quiet_time(self.settings, moment)

    async def load(self) -> bool:
        """Load recent notifications; failures are silent."""
        user = self.user

        async def fetch():
            return await self._client.select(
                self.table,
                filters=[eq("user_id", user.id)],
                order="scheduled_for",
                ascending=False,
                limit=NOTIFICATION_LIMIT,
            )

        def apply(rows: Any) -> None:
            self.notifications = tuple(Notification.model_validate(row) for row in rows or [])

        return await self._load("load", fetch, apply)

    async def schedule(
        self,
        type: str,
        title: str,
        message: str,
        scheduled_for: datetime,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        if type not in NOTIFICATION_TYPES:
            raise validation_choice("type", type, NOTIFICATION_TYPES)
        if not title.strip():
            raise validation_required("title")
        if not message.strip():
            raise validation_required("message")
        user = self._require_user()

        row = {
            "user_id": user.id,
            "type": type,
            "title": title,
            "message": message,
            "scheduled_for": scheduled_for.isoformat(),
            "data": data,
        }
        ok, created = await self._write(
            "schedule",
            lambda: self._client.insert(self.table, [row]),
            success_message=f"{title} scheduled successfully! 🔔",
            error_message="Failed to schedule notification",
        )
        created = first_row(created) if ok else None
        if created is None:
            return None
        notification = Notification.model_validate(created)
        if self._owns(user.id):
            self.notifications = (*self.notifications, notification)
        return notification

    async def schedule_task_reminder(self, task: Task) -> Notification | None:
        """Remind ``reminder_minutes`` before the task is due."""
        if task.due_date is None:
            raise validation_required("due_date")
        user = self._require_user()
        reminder_at = task.due_date - timedelta(minutes=self.settings.reminder_minutes)
        if reminder_at <= self._clock():
            self._notify(NoticeLevel.ERROR, "Cannot schedule reminder for past dates")
            return None

        row = {
            "task_id": task.id,
            "user_id": user.id,
            "notification_type": "reminder",
            "scheduled_for": reminder_at.isoformat(),
        }
        ok, _ = await self._write(
            "schedule_task_reminder",
            lambda: self._client.insert(self.task_table, [row]),
            error_message="Failed to schedule task reminder",
        )
        if not ok:
            return None
        return await self.schedule(
            "task_reminder",
            "Task Reminder",
            f"Don't forget: {task.title}",
            reminder_at,
            {"task_id": task.id, "task_title": task.title},
        )

    async def schedule_mood_reminder(self) -> Notification | None:
        """Check-in reminder at 9 AM tomorrow (local time)."""
        local_now = self._clock().astimezone()
        when = datetime.combine(local_now.date() + timedelta(days=1), MOOD_REMINDER_AT, local_now.tzinfo)
        return await self.schedule(
            "mood_reminder",
            "Mood Check-in",
            "How are you feeling today? Take a moment to log your mood and reflect on your emotional state.",
            when,
        )

    async def schedule_daily_summary(self) -> Notification | None:
        """Summary at 8 PM today, or tomorrow once that has passed."""
        local_now = self._clock().astimezone()
        when = datetime.combine(local_now.date(), DAILY_SUMMARY_AT, local_now.tzinfo)
        if when <= local_now:
            when += timedelta(days=1)
        return await self.schedule(
            "daily_summary",
            "Daily Summary",
            "Review your day and see how you did with your tasks, mood, and overall wellness.",
            when,
        )

    async def mark_read(self, notification_id: str) -> bool:
        """Mark one notification as read; failures are silent."""
        user = self._require_user()
        ok, _ = await self._write(
            "mark_read",
            lambda: self._client.update(self.table, {"sent": True}, [eq("id", notification_id)]),
        )
        if ok and self._owns(user.id):
            self.notifications = tuple(
                n.model_copy(update={"sent": True}) if n.id == notification_id else n for n in self.notifications
            )
        return ok

    async def delete(self, notification_id: str) -> bool:
        user = self._require_user()
        ok, _ = await self._write(
            "delete",
            lambda: self._client.delete(self.table, [eq("id", notification_id)]),
            success_message="Notification deleted",
            error_message="Failed to delete notification",
        )
        if ok and self._owns(user.id):
            self.notifications = tuple(n for n in self.notifications if n.id != notification_id)
        return ok

    async def clear_all(self) -> bool:
        """Mark every unsent notification as read."""
        user = self._require_user()
        ok, _ = await self._write(
            "clear_all",
            lambda: self._client.update(
                self.table,
                {"sent": True},
                [eq("user_id", user.id), eq("sent", False)],
            ),
            success_message="All notifications marked as read",
            error_message="Failed to clear notifications",
        )
        if ok and self._owns(user.id):
            self.notifications = tuple(n.model_copy(update={"sent": True}) for n in self.notifications)
        return ok

    async def load_settings(self) -> bool:
        """Load reminder preferences; keeps the defaults when none are stored."""
        user = self.user

        async def fetch():
            return await self._client.select(
                self.settings_table,
                filters=[eq("user_id", user.id)],
                maybe_single=True,
            )

        def apply(row: Any) -> None:
            if row:
                self.settings = NotificationSettings.model_validate(
                    {k: v for k, v in row.items() if v is not None}
                )

        return await self._load("load_settings", fetch, apply)

    async def update_settings(self, **changes: Any) -> bool:
        fields = tuple(NotificationSettings.model_fields)
        for name in changes:
            if name not in NotificationSettings.model_fields:
                raise validation_choice("setting", name, fields)
        try:
            updated = NotificationSettings.model_validate({**self.settings.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid notification settings: {e.errors()[0]['msg']}", cause=e) from e
        user = self._require_user()

        row = {
            "user_id": user.id,
            **updated.model_dump(),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        ok, _ = await self._write(
            "update_settings",
            lambda: self._client.upsert(self.settings_table, [row], on_conflict="user_id"),
            success_message="Notification settings updated!",
            error_message="Failed to update notification settings",
        )
        if ok and self._owns(user.id):
            self.settings = updated
        return ok
