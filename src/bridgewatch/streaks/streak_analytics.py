"""Quiet-interval (streak) analytics and next-opening estimates per bridge."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(days=30)
CHAMPION_LOOKBACK = timedelta(days=7)
STREAK_COUNT_SATURATION = 10.0


@dataclass(frozen=True)
class StreakPattern:
    start_date: datetime
    end_date: datetime
    duration_hours: float


@dataclass(frozen=True)
class StreakRecord:
    """Streak statistics for one bridge over a lookback window."""

    bridge_id: int
    bridge_name: str
    current_streak_hours: float
    longest_streak_hours: float
    average_streak_hours: float
    streak_count: int
    confidence_level: float
    next_predicted_opening: Optional[datetime] = None
    last_opening: Optional[datetime] = None
    historical_patterns: Tuple[StreakPattern, ...] = field(default_factory=tuple)

    @property
    def formatted_current_streak(self) -> str:
        return format_hours(self.current_streak_hours)

    @property
    def formatted_longest_streak(self) -> str:
        return format_hours(self.longest_streak_hours)

    @property
    def status(self) -> str:
        """One of ``record``, ``good``, ``normal`` or ``poor``."""
        if self.current_streak_hours > self.longest_streak_hours * 0.8:
            return "record"
        if self.current_streak_hours > self.average_streak_hours * 1.2:
            return "good"
        if self.current_streak_hours < self.average_streak_hours * 0.8:
            return "poor"
        return "normal"


@dataclass(frozen=True)
class WeeklyChampion:
    bridge_name: str
    bridge_id: int
    streak_hours: float
    confidence_level: float
    historical_context: str


def format_hours(hours: float) -> str:
    """``"17h"`` below a day, ``"3d 4h"`` otherwise."""
    if hours < 24:
        return f"{int(hours)}h"
    return f"{int(hours // 24)}d {int(hours % 24)}h"


def _streak_confidence(durations: Sequence[float]) -> float:
    if not durations:
        return 0.0
    density = min(len(durations) / STREAK_COUNT_SATURATION, 1.0)
    values = np.asarray(durations, dtype=float)
    mean = float(values.mean())
    if len(values) < 2 or mean <= 0.0:
        cv = 0.0
    else:
        cv = float(values.std()) / mean
    consistency = 1.0 / (1.0 + cv)
    return min(max(density * (0.5 + 0.5 * consistency), 0.0), 1.0)


def compute_streak_record(
    events: Iterable[BridgeEvent],
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
    lookback: timedelta = DEFAULT_LOOKBACK,
    bridge_id: Optional[int] = None,
    bridge_name: Optional[str] = None,
) -> StreakRecord:
    """Streak statistics for a single bridge's events.

    Events outside ``[now - lookback, now]`` are ignored. With nothing left the
    record reports the whole window as the current streak and zero confidence.
    """
    now_local = calendar.localize(now)
    now_s = calendar.epoch_seconds(now)
    if now_local is None or now_s is None:
        raise ValueError(f"Cannot place reference time {now!r} on the calendar")
    window_hours = lookback.total_seconds() / 3600.0
    start_s = now_s - lookback.total_seconds()

    timeline: List[Tuple[float, float, BridgeEvent]] = []
    for event in events:
        opened = calendar.epoch_seconds(event.open_time)
        closed = calendar.epoch_seconds(event.effective_close_time)
        if opened is None or closed is None:
            continue
        if start_s <= opened <= now_s:
            timeline.append((opened, max(closed, opened), event))
    timeline.sort(key=lambda item: (item[0], item[1], item[2].entity_id))

    if bridge_id is None:
        bridge_id = timeline[0][2].entity_id if timeline else 0
    if bridge_name is None:
        bridge_name = min((item[2].entity_name for item in timeline), default="")

    if not timeline:
        return StreakRecord(
            bridge_id=int(bridge_id),
            bridge_name=bridge_name,
            current_streak_hours=window_hours,
            longest_streak_hours=0.0,
            average_streak_hours=0.0,
            streak_count=0,
            confidence_level=0.0,
        )

    patterns: List[StreakPattern] = []
    for (_, closed, previous), (opened, _, following) in zip(timeline, timeline[1:]):
        gap = max((opened - closed) / 3600.0, 0.0)  # overlapping openings
        patterns.append(
            StreakPattern(
                start_date=calendar.localize(previous.effective_close_time),
                end_date=calendar.localize(following.open_time),
                duration_hours=gap,
            )
        )

    durations = [pattern.duration_hours for pattern in patterns]
    average = float(np.mean(durations)) if durations else 0.0
    longest = max(durations, default=0.0)
    last_close = max(closed for _, closed, _ in timeline)
    current = max((now_s - last_close) / 3600.0, 0.0)
    last_opening = calendar.localize(timeline[-1][2].open_time)

    next_opening = now_local + timedelta(hours=average) if patterns else None
    record = StreakRecord(
        bridge_id=int(bridge_id),
        bridge_name=bridge_name,
        current_streak_hours=current,
        longest_streak_hours=longest,
        average_streak_hours=average,
        streak_count=len(patterns),
        confidence_level=_streak_confidence(durations),
        next_predicted_opening=next_opening,
        last_opening=last_opening,
        historical_patterns=tuple(reversed(patterns)),
    )
    logger.debug(
        "Bridge %s: %d streaks, current %.1fh, longest %.1fh",
        record.bridge_id,
        record.streak_count,
        record.current_streak_hours,
        record.longest_streak_hours,
    )
    return record


def _group_by_bridge(events: Iterable[BridgeEvent]) -> Dict[int, List[BridgeEvent]]:
    grouped: Dict[int, List[BridgeEvent]] = defaultdict(list)
    for event in events:
        grouped[event.entity_id].append(event)
    return grouped


def compute_streak_records(
    events: Iterable[BridgeEvent],
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
    lookback: timedelta = DEFAULT_LOOKBACK,
) -> List[StreakRecord]:
    """One record per bridge present in the snapshot, sorted by bridge id.

    Bridges are identified from the whole snapshot, so a bridge that was quiet
    for the entire window still gets a record.
    """
    grouped = _group_by_bridge(events)
    records = []
    for entity_id in sorted(grouped):
        bridge_events = grouped[entity_id]
        records.append(
            compute_streak_record(
                bridge_events,
                now=now,
                calendar=calendar,
                lookback=lookback,
                bridge_id=entity_id,
                bridge_name=min(event.entity_name for event in bridge_events),
            )
        )
    logger.info("Computed streak records for %d bridges", len(records))
    return records


def historical_context(record: StreakRecord) -> str:
    if record.last_opening is None:
        return "No openings observed in the lookback window"
    if record.streak_count == 0:
        return "Single opening in the lookback window"
    current = record.current_streak_hours
    if current > record.longest_streak_hours * 0.8:
        return "Near record-breaking streak"
    if current > record.average_streak_hours * 1.5:
        return "Above average performance"
    if current < record.average_streak_hours * 0.5:
        return "Below average streak"
    return "Typical performance"


def champion_from_records(records: Sequence[StreakRecord]) -> Optional[WeeklyChampion]:
    if not records:
        return None
    best = min(records, key=lambda record: (-record.current_streak_hours, record.bridge_id))
    return WeeklyChampion(
        bridge_name=best.bridge_name,
        bridge_id=best.bridge_id,
        streak_hours=best.current_streak_hours,
        confidence_level=best.confidence_level,
        historical_context=historical_context(best),
    )


def weekly_champion(
    events: Iterable[BridgeEvent],
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
    lookback: timedelta = CHAMPION_LOOKBACK,
) -> Optional[WeeklyChampion]:
    """Bridge with the longest current streak; ties go to the lower bridge id."""
    records = compute_streak_records(events, now=now, calendar=calendar, lookback=lookback)
    return champion_from_records(records)


STREAK_COLUMNS = [
    "bridge_id",
    "bridge_name",
    "current_streak_hours",
    "longest_streak_hours",
    "average_streak_hours",
    "streak_count",
    "confidence_level",
    "next_predicted_opening",
    "last_opening",
    "status",
]


def streaks_to_dataframe(records: Sequence[StreakRecord]) -> pd.DataFrame:
    rows = [
        {
            "bridge_id": record.bridge_id,
            "bridge_name": record.bridge_name,
            "current_streak_hours": record.current_streak_hours,
            "longest_streak_hours": record.longest_streak_hours,
            "average_streak_hours": record.average_streak_hours,
            "streak_count": record.streak_count,
            "confidence_level": record.confidence_level,
            "next_predicted_opening": record.next_predicted_opening,
            "last_opening": record.last_opening,
            "status": record.status,
        }
        for record in sorted(records, key=lambda record: record.bridge_id)
    ]
    return pd.DataFrame(rows, columns=STREAK_COLUMNS)
