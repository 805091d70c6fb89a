"""Mood streak analytics.

Pure functions over mood entries: no network access and no mutable state.
Entries are bucketed by calendar date in the given timezone (the system's
local zone by default); several entries on one day count once.

Example:
    >>> result = calculate_streak(entries, now=datetime.now(UTC))
    >>> result.current_streak, result.longest_streak
    (3, 12)
    >>> streak_emoji(result.current_streak)
    '🔥'
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any

MILESTONES = (7, 14, 30, 60, 100, 365)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakResult:
    """Current and longest consecutive-day streaks.

    ``last_entry_at`` is the newest entry timestamp, or None without entries.
    """

    current_streak: int = 0
    longest_streak: int = 0
    last_entry_at: datetime | None = None


EMPTY_STREAK = StreakResult()


class StreakStatus(Enum):
    NONE = "none"
    CURRENT = "current"
    YESTERDAY = "yesterday"
    BROKEN = "broken"


STATUS_MESSAGES = {
    StreakStatus.NONE: "Start your mood tracking journey!",
    StreakStatus.CURRENT: "Great! You logged your mood today.",
    StreakStatus.YESTERDAY: "Log your mood today to continue your streak!",
    StreakStatus.BROKEN: "Your streak was broken. Start a new one today!",
}


@dataclass(frozen=True)
class Milestone:
    milestone: int
    days_remaining: int


def _timestamp(entry: Any) -> datetime:
    value = entry.get("created_at") if isinstance(entry, dict) else entry.created_at
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"created_at must be a datetime or ISO string, got {type(value).__name__}")
    # Backend timestamps are timestamptz; a naive value is taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _local_date(moment: datetime, tz: tzinfo | None) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz).date()


def calculate_streak(
    entries: Iterable[Any],
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> StreakResult:
    """Compute current and longest streaks from mood entries.

    The current streak counts consecutive days back from the most recent
    entry date, but only if that date is today or yesterday (one day of
    grace so a streak survives until the day is over).

    Args:
        entries: Objects or dicts with a ``created_at`` datetime/ISO string.
        now: Reference time; defaults to the current time.
        tz: Timezone for calendar-date bucketing; defaults to the local zone.

    Returns:
        StreakResult; ``(0, 0, None)`` for no entries.
    """
    timestamps = [_timestamp(entry) for entry in entries]
    if not timestamps:
        return EMPTY_STREAK

    dates = sorted({_local_date(ts, tz) for ts in timestamps}, reverse=True)
    today = _local_date(now or datetime.now(UTC), tz)

    current = 0
    if dates[0] in (today, today - ONE_DAY):
        expected = dates[0]
        for day in dates:
            if day != expected:
                break
            current += 1
            expected -= ONE_DAY

    longest = run = 1
    for newer, older in zip(dates, dates[1:]):
        if newer - older == ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return StreakResult(
        current_streak=current,
        longest_streak=longest,
        last_entry_at=max(timestamps),
    )


def streak_status(
    last_entry_at: datetime | None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> tuple[StreakStatus, str]:
    """Classify the streak by the date of the last entry."""
    if last_entry_at is None:
        status = StreakStatus.NONE
    else:
        last = _local_date(last_entry_at, tz)
        today = _local_date(now or datetime.now(UTC), tz)
        if last == today:
            status = StreakStatus.CURRENT
        elif last == today - ONE_DAY:
            status = StreakStatus.YESTERDAY
        else:
            status = StreakStatus.BROKEN
    return status, STATUS_MESSAGES[status]


def next_milestone(current_streak: int) -> Milestone | None:
    """The next milestone above the current streak, or None past the last."""
    for milestone in MILESTONES:
        if milestone > current_streak:
            return Milestone(milestone=milestone, days_remaining=milestone - current_streak)
    return None


def streak_emoji(current_streak: int) -> str:
    if current_streak == 0:
        return "🌱"
    if current_streak < 7:
        return "🔥"
    if current_streak < 30:
        return "⚡"
    if current_streak < 100:
        return "🏆"
    return "👑"
