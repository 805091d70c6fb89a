"""Tests for mood streak analytics."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from mindpal.models import MoodEntry
from mindpal.streaks import (
    EMPTY_STREAK,
    StreakStatus,
    calculate_streak,
    next_milestone,
    streak_emoji,
    streak_status,
)

NOW = datetime(2024, 1, 12, 18, 0, tzinfo=UTC)


def entry(day: int, hour: int = 9, month: int = 1):
    return {"created_at": datetime(2024, month, day, hour, 0, tzinfo=UTC)}


class TestCalculateStreak:
    def test_no_entries(self):
        assert calculate_streak([], now=NOW, tz=UTC) == EMPTY_STREAK

    def test_three_consecutive_days_ending_today(self):
        entries = [entry(10), entry(11), entry(12)]

        result = calculate_streak(entries, now=NOW, tz=UTC)

        assert result.current_streak == 3
        assert result.longest_streak == 3
        assert result.last_entry_at == datetime(2024, 1, 12, 9, 0, tzinfo=UTC)

    def test_streak_survives_until_day_is_over(self):
        """Last entry yesterday still counts as a current streak."""
        entries = [entry(10), entry(11)]
        assert calculate_streak(entries, now=NOW, tz=UTC).current_streak == 2

    def test_old_entries_have_no_current_streak(self):
        entries = [entry(6), entry(7)]

        result = calculate_streak(entries, now=NOW, tz=UTC)

        assert result.current_streak == 0
        assert result.longest_streak == 2

    def test_multiple_entries_per_day_count_once(self):
        entries = [entry(12, 8), entry(12, 20), entry(11, 9), entry(11, 10)]

        result = calculate_streak(entries, now=NOW, tz=UTC)

        assert result.current_streak == 2
        assert result.last_entry_at == datetime(2024, 1, 12, 20, 0, tzinfo=UTC)

    def test_longest_streak_in_the_past(self):
        entries = [entry(1), entry(2), entry(3), entry(4), entry(11), entry(12)]

        result = calculate_streak(entries, now=NOW, tz=UTC)

        assert result.current_streak == 2
        assert result.longest_streak == 4

    def test_gap_breaks_current_streak(self):
        entries = [entry(12), entry(10), entry(9)]

        result = calculate_streak(entries, now=NOW, tz=UTC)

        assert result.current_streak == 1
        assert result.longest_streak == 2

    def test_unordered_input(self):
        entries = [entry(11), entry(12), entry(10)]
        assert calculate_streak(entries, now=NOW, tz=UTC).current_streak == 3

    def test_iso_strings_and_models(self):
        entries = [
            {"created_at": "2024-01-12T09:00:00Z"},
            MoodEntry(id="m1", mood=7, emoji="🙂", created_at=datetime(2024, 1, 11, 9, tzinfo=UTC)),
        ]
        assert calculate_streak(entries, now=NOW, tz=UTC).current_streak == 2

    def test_dates_are_bucketed_in_given_timezone(self):
        """23:30 UTC is already the next day at UTC+2."""
        plus_two = timezone(timedelta(hours=2))
        entries = [
            {"created_at": datetime(2024, 1, 10, 23, 30, tzinfo=UTC)},
            {"created_at": datetime(2024, 1, 11, 9, 0, tzinfo=UTC)},
        ]

        assert calculate_streak(entries, now=NOW, tz=UTC).longest_streak == 2
        assert calculate_streak(entries, now=NOW, tz=plus_two).longest_streak == 1

    def test_rejects_entries_without_timestamp(self):
        with pytest.raises(TypeError):
            calculate_streak([{"created_at": None}], now=NOW, tz=UTC)


class TestStreakStatus:
    @pytest.mark.parametrize(
        ("last", "expected"),
        [
            (None, StreakStatus.NONE),
            (datetime(2024, 1, 12, 7, tzinfo=UTC), StreakStatus.CURRENT),
            (datetime(2024, 1, 11, 7, tzinfo=UTC), StreakStatus.YESTERDAY),
            (datetime(2024, 1, 9, 7, tzinfo=UTC), StreakStatus.BROKEN),
        ],
    )
    def test_status_by_last_entry(self, last, expected):
        status, message = streak_status(last, now=NOW, tz=UTC)
        assert status is expected
        assert message

    def test_yesterday_message(self):
        _, message = streak_status(datetime(2024, 1, 11, tzinfo=UTC), now=NOW, tz=UTC)
        assert message == "Log your mood today to continue your streak!"


class TestMilestones:
    @pytest.mark.parametrize(
        ("current", "milestone", "remaining"),
        [(0, 7, 7), (6, 7, 1), (7, 14, 7), (45, 60, 15), (364, 365, 1)],
    )
    def test_next_milestone(self, current, milestone, remaining):
        result = next_milestone(current)
        assert result.milestone == milestone
        assert result.days_remaining == remaining

    def test_past_last_milestone(self):
        assert next_milestone(365) is None

    @pytest.mark.parametrize(
        ("current", "emoji"),
        [(0, "🌱"), (1, "🔥"), (6, "🔥"), (7, "⚡"), (29, "⚡"), (30, "🏆"), (99, "🏆"), (100, "👑")],
    )
    def test_emoji(self, current, emoji):
        assert streak_emoji(current) == emoji
