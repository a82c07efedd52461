"""Streak analytics package exports."""

from .streak_analytics import (
    StreakPattern,
    StreakRecord,
    WeeklyChampion,
    champion_from_records,
    compute_streak_record,
    compute_streak_records,
    format_hours,
    historical_context,
    streaks_to_dataframe,
    weekly_champion,
)

__all__ = [
    "StreakPattern",
    "StreakRecord",
    "WeeklyChampion",
    "champion_from_records",
    "compute_streak_record",
    "compute_streak_records",
    "format_hours",
    "historical_context",
    "streaks_to_dataframe",
    "weekly_champion",
]
