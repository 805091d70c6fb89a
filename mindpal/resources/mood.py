"""Mood log store with streak tracking and live reloads."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any

from mindpal.backend.client import Subscription
from mindpal.backend.types import ChangeEvent, eq, gte
from mindpal.errors import validation_out_of_range, validation_required
from mindpal.models import MoodEntry
from mindpal.reliability.debounce import Debouncer
from mindpal.reliability.retry import RetryPolicy
from mindpal.resources.base import RemoteResource, ResourceContext, first_row
from mindpal.streaks import (
    EMPTY_STREAK,
    Milestone,
    StreakResult,
    StreakStatus,
    calculate_streak,
    next_milestone,
    streak_emoji,
    streak_status,
)

logger = logging.getLogger(__name__)

MOOD_COLUMNS = "id,mood,emoji,notes,created_at"
LOOKBACK = timedelta(days=365)
LOAD_POLICY = RetryPolicy(max_attempts=3, base_delay=1.0)


class MoodStore(RemoteResource):
    """The signed-in user's mood entries from the last year, newest first.

    ``streak`` is recomputed from the entries after every load and write.
    """

    table = "mood_entries"

    def __init__(
        self,
        context: ResourceContext,
        *,
        reload_delay: float = 1.0,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        super().__init__(context, policy or LOAD_POLICY)
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(UTC))
        self._reload = Debouncer(reload_delay, self.refresh)
        self._subscription: Subscription | None = None
        self.entries: tuple[MoodEntry, ...] = ()
        self.streak: StreakResult = EMPTY_STREAK

    def reset(self) -> None:
        self.entries = ()
        self.streak = EMPTY_STREAK

    def dispose(self) -> None:
        self._reload.cancel()
        self.unwatch()
        super().dispose()

    def _replace(self, entries: tuple[MoodEntry, ...]) -> None:
        self.entries = entries
        self.streak = calculate_streak(entries, now=self._clock(), tz=self._tz)

    async def load(self) -> bool:
        user = self.user
        since = self._clock() - LOOKBACK

        async def fetch():
            return await self._client.select(
                self.table,
                columns=MOOD_COLUMNS,
                filters=[eq("user_id", user.id), gte("created_at", since.isoformat())],
                order="created_at",
                ascending=False,
            )

        def apply(rows: Any) -> None:
            self._replace(tuple(MoodEntry.model_validate(row) for row in rows or []))

        return await self._load("load", fetch, apply, error_message="Failed to load mood history")

    async def refresh(self) -> bool:
        """Reload unless a load is already in flight."""
        if self.is_loading or self._disposed:
            return False
        return await self.load()

    async def log_mood(self, mood: int, emoji: str, notes: str | None = None) -> MoodEntry | None:
        if not isinstance(mood, int) or isinstance(mood, bool) or not 1 <= mood <= 10:
            raise validation_out_of_range("mood", mood, 1, 10)
        if not emoji:
            raise validation_required("emoji")
        user = self._require_user()

        row = {"user_id": user.id, "mood": mood, "emoji": emoji, "notes": (notes or "").strip() or None}
        ok, data = await self._write(
            "create",
            lambda: self._client.insert(self.table, [row]),
            success_message="Mood saved! 🎉",
            error_message="Failed to save mood entry",
        )
        created = first_row(data) if ok else None
        if created is None:
            return None
        entry = MoodEntry.model_validate(created)
        if self._owns(user.id):
            self._replace((entry, *self.entries))
        return entry

    async def update_notes(self, entry_id: str, notes: str | None) -> MoodEntry | None:
        """Edit the notes of an entry; mood and timestamp are immutable."""
        user = self._require_user()
        value = (notes or "").strip() or None
        ok, data = await self._write(
            "update",
            lambda: self._client.update(self.table, {"notes": value}, [eq("id", entry_id)]),
            success_message="Mood entry updated",
            error_message="Failed to update mood entry",
        )
        updated = first_row(data) if ok else None
        if updated is None:
            return None
        entry = MoodEntry.model_validate(updated)
        if self._owns(user.id):
            self._replace(tuple(entry if e.id == entry_id else e for e in self.entries))
        return entry

    async def delete(self, entry_id: str) -> bool:
        user = self._require_user()
        ok, _ = await self._write(
            "delete",
            lambda: self._client.delete(self.table, [eq("id", entry_id)]),
            success_message="Mood entry deleted",
            error_message="Failed to delete mood entry",
        )
        if ok and self._owns(user.id):
            self._replace(tuple(e for e in self.entries if e.id != entry_id))
        return ok

    # Live updates

    async def watch(self) -> bool:
        """Reload (debounced) whenever the user's mood entries change remotely."""
        feed = self._client.realtime
        user = self.user
        if feed is None or user is None or self._subscription is not None:
            return False
        if not self._ctx.monitor.state.can_reach_backend:
            return False
        try:
            self._subscription = await feed.subscribe(self.table, eq("user_id", user.id), self._on_change)
        except Exception as e:
            logger.warning(f"Could not subscribe to {self.table} changes: {e}")
            return False
        logger.info("Watching %s for user %s", self.table, user.id)
        return True

    def unwatch(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("Mood entry change detected: %s", event.event_type)
        if not self._disposed:
            self._reload.trigger()

    def _on_session_change(self, event, session) -> None:
        if session is None:
            self._reload.cancel()
            self.unwatch()
        super()._on_session_change(event, session)

    # Presentation

    def status(self) -> tuple[StreakStatus, str]:
        return streak_status(self.streak.last_entry_at, now=self._clock(), tz=self._tz)

    def next_milestone(self) -> Milestone | None:
        return next_milestone(self.streak.current_streak)

    @property
    def emoji(self) -> str:
        return streak_emoji(self.streak.current_streak)
