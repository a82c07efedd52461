"""Seasonal decomposition of analytics cells into trend, seasonal and residual parts."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

import pandas as pd

from bridgewatch.events.domain_types import CellKey

from .hourly_aggregator import AnalyticsCell

TREND_WINDOW = 24
SUMMER_MONTHS = range(5, 10)
RUSH_HOURS = frozenset({7, 8, 9, 16, 17, 18})
HOLIDAY_ADJUSTMENT = 0.3


@dataclass(frozen=True)
class SeasonalProfile:
    """Decomposed opening counts and pattern flags for one cell."""

    key: CellKey
    trend_component: float
    seasonal_component: float
    residual_component: float
    weekly_seasonality: float
    monthly_seasonality: float
    hourly_seasonality: float
    is_weekend_pattern: bool
    is_rush_hour_pattern: bool
    is_summer_pattern: bool
    holiday_adjustment: float


def is_weekend(day_of_week: int) -> bool:
    return day_of_week in (1, 7)


def is_rush_hour(day_of_week: int, hour: int) -> bool:
    """Weekday 7-9 AM and 4-6 PM."""
    return not is_weekend(day_of_week) and hour in RUSH_HOURS


def is_summer(month: int) -> bool:
    return month in SUMMER_MONTHS


def holiday_adjustment(month: int, day_of_week: int) -> float:
    """July, plus the Monday holidays of May and September."""
    if month == 7 or (month in (5, 9) and day_of_week == 2):
        return HOLIDAY_ADJUSTMENT
    return 0.0


def decompose_cells(
    cells: Mapping[CellKey, AnalyticsCell], *, trend_window: int = TREND_WINDOW
) -> Dict[CellKey, SeasonalProfile]:
    """Return one :class:`SeasonalProfile` per cell, computed bridge by bridge."""
    if trend_window <= 0:
        raise ValueError("trend_window must be positive.")
    by_bridge: Dict[int, List[AnalyticsCell]] = defaultdict(list)
    for key in sorted(cells):
        by_bridge[key.entity_id].append(cells[key])

    profiles: Dict[CellKey, SeasonalProfile] = {}
    for entity_id in sorted(by_bridge):
        profiles.update(_decompose_bridge(by_bridge[entity_id], trend_window))
    return profiles


def _decompose_bridge(
    ordered: Sequence[AnalyticsCell], trend_window: int
) -> Dict[CellKey, SeasonalProfile]:
    counts = [float(cell.opening_count) for cell in ordered]
    half = trend_window // 2

    weekly, weekly_mean = _group_means(ordered, lambda cell: cell.day_of_week)
    monthly, monthly_mean = _group_means(ordered, lambda cell: cell.month)
    hourly, hourly_mean = _group_means(ordered, lambda cell: cell.hour)

    profiles: Dict[CellKey, SeasonalProfile] = {}
    for index, cell in enumerate(ordered):
        window = counts[max(0, index - half) : min(len(counts), index + half + 1)]
        trend = sum(window) / len(window)

        weekly_value = weekly[cell.day_of_week]
        monthly_value = monthly[cell.month]
        hourly_value = hourly[cell.hour]
        seasonal = (
            (weekly_value - weekly_mean)
            + (monthly_value - monthly_mean)
            + (hourly_value - hourly_mean)
        )
        profiles[cell.key] = SeasonalProfile(
            key=cell.key,
            trend_component=trend,
            seasonal_component=seasonal,
            residual_component=counts[index] - (trend + seasonal),
            weekly_seasonality=weekly_value,
            monthly_seasonality=monthly_value,
            hourly_seasonality=hourly_value,
            is_weekend_pattern=is_weekend(cell.day_of_week),
            is_rush_hour_pattern=is_rush_hour(cell.day_of_week, cell.hour),
            is_summer_pattern=is_summer(cell.month),
            holiday_adjustment=holiday_adjustment(cell.month, cell.day_of_week),
        )
    return profiles


def _group_means(
    cells: Sequence[AnalyticsCell], key_fn: Callable[[AnalyticsCell], int]
) -> Tuple[Dict[int, float], float]:
    """Mean opening count per group plus the mean of those group means."""
    totals: Dict[int, float] = defaultdict(float)
    sizes: Dict[int, int] = defaultdict(int)
    for cell in cells:
        group = key_fn(cell)
        totals[group] += cell.opening_count
        sizes[group] += 1
    means = {group: totals[group] / sizes[group] for group in sorted(totals)}
    overall = sum(means.values()) / len(means) if means else 0.0
    return means, overall


PROFILE_COLUMNS = [
    "entity_id",
    "year",
    "month",
    "day_of_week",
    "hour",
    "trend_component",
    "seasonal_component",
    "residual_component",
    "is_weekend_pattern",
    "is_rush_hour_pattern",
    "is_summer_pattern",
    "holiday_adjustment",
]


def profiles_to_dataframe(profiles: Mapping[CellKey, SeasonalProfile]) -> pd.DataFrame:
    rows = []
    for key in sorted(profiles):
        profile = profiles[key]
        rows.append(
            {
                "entity_id": key.entity_id,
                "year": key.year,
                "month": key.month,
                "day_of_week": key.day_of_week,
                "hour": key.hour,
                "trend_component": profile.trend_component,
                "seasonal_component": profile.seasonal_component,
                "residual_component": profile.residual_component,
                "is_weekend_pattern": profile.is_weekend_pattern,
                "is_rush_hour_pattern": profile.is_rush_hour_pattern,
                "is_summer_pattern": profile.is_summer_pattern,
                "holiday_adjustment": profile.holiday_adjustment,
            }
        )
    return pd.DataFrame(rows, columns=PROFILE_COLUMNS)
