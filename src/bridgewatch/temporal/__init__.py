"""Temporal aggregation package exports."""

from .hourly_aggregator import (
    AnalyticsCell,
    aggregate_events,
    cells_for_bridge,
    cells_to_dataframe,
)
from .seasonal import SeasonalProfile, decompose_cells, profiles_to_dataframe
from .trends import (
    DailyTrendPoint,
    TrendSummary,
    WeeklyTrendPoint,
    bridge_count_trend,
    daily_trend,
    trend_summary,
    weekly_trend,
)

__all__ = [
    "AnalyticsCell",
    "DailyTrendPoint",
    "SeasonalProfile",
    "TrendSummary",
    "WeeklyTrendPoint",
    "aggregate_events",
    "bridge_count_trend",
    "cells_for_bridge",
    "cells_to_dataframe",
    "daily_trend",
    "decompose_cells",
    "profiles_to_dataframe",
    "trend_summary",
    "weekly_trend",
]
