"""Daily and weekly opening-count series with period-over-period summaries."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Set

from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent


@dataclass(frozen=True)
class DailyTrendPoint:
    date: date
    count: int
    average_duration: float


@dataclass(frozen=True)
class WeeklyTrendPoint:
    week_start: date
    count: int
    average_duration: float
    bridge_count: int


@dataclass(frozen=True)
class TrendSummary:
    current_value: int
    previous_value: int
    change: int
    change_percentage: float
    direction: str  # "up", "down" or "stable"
    data_points: Sequence[DailyTrendPoint] = field(default_factory=tuple)

    @property
    def symbol(self) -> str:
        return {"up": "↗", "down": "↘"}.get(self.direction, "→")


def daily_trend(
    events: Iterable[BridgeEvent],
    *,
    now: datetime,
    days: int = 30,
    calendar: AnalyticsCalendar,
) -> List[DailyTrendPoint]:
    """Zero-filled per-day counts for the ``days`` local days ending today."""
    if days <= 0:
        return []
    today = calendar.local_date(now)
    if today is None:
        raise ValueError(f"Cannot place reference time {now!r} on the calendar")
    first_day = today - timedelta(days=days - 1)
    durations: Dict[date, List[float]] = {
        first_day + timedelta(days=offset): [] for offset in range(days)
    }
    for event in events:
        day = calendar.local_date(event.open_time)
        if day is not None and day in durations:
            durations[day].append(event.minutes_open)
    return [
        DailyTrendPoint(date=day, count=len(values), average_duration=_mean(values))
        for day, values in sorted(durations.items())
    ]


def weekly_trend(
    events: Iterable[BridgeEvent],
    *,
    now: datetime,
    weeks: int = 12,
    calendar: AnalyticsCalendar,
) -> List[WeeklyTrendPoint]:
    """Per-week counts for the ``weeks`` Sunday-start weeks ending with this one."""
    if weeks <= 0:
        return []
    today = calendar.local_date(now)
    if today is None:
        raise ValueError(f"Cannot place reference time {now!r} on the calendar")
    this_week = calendar.start_of_week(today)
    week_starts = [this_week - timedelta(weeks=offset) for offset in range(weeks)]
    durations: Dict[date, List[float]] = {start: [] for start in week_starts}
    bridges: Dict[date, Set[int]] = defaultdict(set)
    for event in events:
        day = calendar.local_date(event.open_time)
        if day is None:
            continue
        start = calendar.start_of_week(day)
        if start in durations:
            durations[start].append(event.minutes_open)
            bridges[start].add(event.entity_id)
    return [
        WeeklyTrendPoint(
            week_start=start,
            count=len(values),
            average_duration=_mean(values),
            bridge_count=len(bridges.get(start, ())),
        )
        for start, values in sorted(durations.items())
    ]


def trend_summary(
    current_value: int,
    previous_value: int,
    data_points: Sequence[DailyTrendPoint] = (),
) -> TrendSummary:
    change = int(current_value) - int(previous_value)
    percentage = (change / previous_value) * 100.0 if previous_value > 0 else 0.0
    if change > 0:
        direction = "up"
    elif change < 0:
        direction = "down"
    else:
        direction = "stable"
    return TrendSummary(
        current_value=int(current_value),
        previous_value=int(previous_value),
        change=change,
        change_percentage=percentage,
        direction=direction,
        data_points=tuple(data_points),
    )


def bridge_count_trend(
    events: Sequence[BridgeEvent],
    *,
    now: datetime,
    days: int = 7,
    calendar: AnalyticsCalendar,
) -> TrendSummary:
    """Distinct active bridges in the last ``days`` days vs the period before."""
    now_seconds = calendar.epoch_seconds(now)
    if now_seconds is None:
        raise ValueError(f"Cannot place reference time {now!r} on the calendar")
    period = days * 86400.0
    current: Set[int] = set()
    previous: Set[int] = set()
    for event in events:
        opened = calendar.epoch_seconds(event.open_time)
        if opened is None or opened > now_seconds:
            continue
        age = now_seconds - opened
        if age <= period:
            current.add(event.entity_id)
        elif age <= 2 * period:
            previous.add(event.entity_id)
    points = daily_trend(events, now=now, days=days, calendar=calendar)
    return trend_summary(len(current), len(previous), points)


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values) if values else 0.0
