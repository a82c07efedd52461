"""Calendar-bucket aggregation of bridge openings (probability, duration, confidence)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from bridgewatch.events.calendar import AnalyticsCalendar, days_spanned
from bridgewatch.events.domain_types import BridgeEvent, CellKey

logger = logging.getLogger(__name__)

SAMPLE_SIZE_SATURATION = 10.0
VARIABILITY_SCALE = 10.0


@dataclass(frozen=True)
class AnalyticsCell:
    """Opening statistics for one bridge in one (year, month, weekday, hour) bucket."""

    key: CellKey
    entity_name: str
    opening_count: int
    total_minutes_open: float
    average_minutes_per_opening: float
    longest_opening_minutes: float
    shortest_opening_minutes: float
    probability_of_opening: float
    expected_duration_minutes: float
    confidence: float
    last_calculated: Optional[datetime]

    @property
    def entity_id(self) -> int:
        return self.key.entity_id

    @property
    def year(self) -> int:
        return self.key.year

    @property
    def month(self) -> int:
        return self.key.month

    @property
    def day_of_week(self) -> int:
        return self.key.day_of_week

    @property
    def hour(self) -> int:
        return self.key.hour


class _CellAccumulator:
    """Durations collected for one bucket; lives only for one aggregation pass."""

    __slots__ = ("entity_name", "minutes")

    def __init__(self, entity_name: str, minutes_open: float):
        self.entity_name = entity_name
        self.minutes: List[float] = [minutes_open]

    def add(self, minutes_open: float) -> None:
        self.minutes.append(minutes_open)

    @property
    def count(self) -> int:
        return len(self.minutes)

    @property
    def total(self) -> float:
        # fsum is exact, so the total does not depend on event order.
        return math.fsum(self.minutes)

    @property
    def longest(self) -> float:
        return max(self.minutes)

    @property
    def shortest(self) -> float:
        return min(self.minutes)

    @property
    def average(self) -> float:
        return self.total / self.count


def aggregate_events(
    events: Iterable[BridgeEvent],
    *,
    calendar: AnalyticsCalendar,
    calculated_at: Optional[datetime] = None,
) -> Dict[CellKey, AnalyticsCell]:
    """Bucket ``events`` into analytics cells.

    The result depends only on the multiset of events, the calendar and
    ``calculated_at``; when ``calculated_at`` is omitted the latest open time in
    the snapshot is stamped on every cell.
    """
    buckets: Dict[CellKey, _CellAccumulator] = {}
    date_ranges: Dict[int, Tuple[date, date]] = {}
    latest_open: Optional[Tuple[float, datetime]] = None
    skipped = 0

    for event in events:
        calendar_key = calendar.decompose(event.open_time)
        local_day = calendar.local_date(event.open_time)
        if calendar_key is None or local_day is None:
            skipped += 1
            continue

        key = CellKey.for_bridge(event.entity_id, calendar_key)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = _CellAccumulator(event.entity_name, event.minutes_open)
        else:
            bucket.add(event.minutes_open)
            # Keep the bucket label independent of input order.
            if event.entity_name < bucket.entity_name:
                bucket.entity_name = event.entity_name

        first, last = date_ranges.get(event.entity_id, (local_day, local_day))
        date_ranges[event.entity_id] = (min(first, local_day), max(last, local_day))

        stamp = calendar.epoch_seconds(event.open_time)
        if stamp is not None and (latest_open is None or stamp > latest_open[0]):
            latest_open = (stamp, calendar.localize(event.open_time))

    if skipped:
        logger.warning("Skipped %d events whose open time could not be decomposed", skipped)

    if calculated_at is None and latest_open is not None:
        calculated_at = latest_open[1]

    cells: Dict[CellKey, AnalyticsCell] = {}
    for key in sorted(buckets):
        bucket = buckets[key]
        first, last = date_ranges[key.entity_id]
        cells[key] = _finalize_cell(
            key,
            bucket,
            day_count=days_spanned(first, last),
            calculated_at=calculated_at,
        )

    logger.debug(
        "Aggregated %d cells for %d bridges", len(cells), len(date_ranges)
    )
    return cells


def _finalize_cell(
    key: CellKey,
    bucket: _CellAccumulator,
    *,
    day_count: int,
    calculated_at: Optional[datetime],
) -> AnalyticsCell:
    average = bucket.average
    # Every spanned day contributes one occurrence of each hour of day.
    probability = bucket.count / max(day_count, 1)
    probability = min(max(probability, 0.0), 1.0)
    confidence = _cell_confidence(bucket.count, bucket.longest, bucket.shortest, average)
    return AnalyticsCell(
        key=key,
        entity_name=bucket.entity_name,
        opening_count=bucket.count,
        total_minutes_open=bucket.total,
        average_minutes_per_opening=average,
        longest_opening_minutes=bucket.longest,
        shortest_opening_minutes=bucket.shortest,
        probability_of_opening=probability,
        expected_duration_minutes=average,
        confidence=confidence,
        last_calculated=calculated_at,
    )


def _sample_size_confidence(opening_count: int) -> float:
    return min(opening_count / SAMPLE_SIZE_SATURATION, 1.0)


def _variability_confidence(
    opening_count: int, longest: float, shortest: float, average: float
) -> float:
    if opening_count <= 1:
        return 0.0  # a single opening carries no variability signal
    ratio = (longest - shortest) / max(average, 1.0)
    return max(0.0, 1.0 - ratio / VARIABILITY_SCALE)


def _cell_confidence(opening_count: int, longest: float, shortest: float, average: float) -> float:
    score = (
        _sample_size_confidence(opening_count)
        + _variability_confidence(opening_count, longest, shortest, average)
    ) / 2.0
    return min(max(score, 0.0), 1.0)


def cells_for_bridge(
    cells: Mapping[CellKey, AnalyticsCell], entity_id: int
) -> List[AnalyticsCell]:
    return [cell for key, cell in sorted(cells.items()) if key.entity_id == int(entity_id)]


CELL_COLUMNS = [
    "entity_id",
    "entity_name",
    "year",
    "month",
    "day_of_week",
    "hour",
    "opening_count",
    "total_minutes_open",
    "average_minutes_per_opening",
    "longest_opening_minutes",
    "shortest_opening_minutes",
    "probability_of_opening",
    "expected_duration_minutes",
    "confidence",
    "last_calculated",
]


def cells_to_dataframe(cells: Mapping[CellKey, AnalyticsCell]) -> pd.DataFrame:
    """Tidy table with one row per cell, sorted by bucket key."""
    rows = []
    for key in sorted(cells):
        cell = cells[key]
        rows.append(
            {
                "entity_id": key.entity_id,
                "entity_name": cell.entity_name,
                "year": key.year,
                "month": key.month,
                "day_of_week": key.day_of_week,
                "hour": key.hour,
                "opening_count": cell.opening_count,
                "total_minutes_open": cell.total_minutes_open,
                "average_minutes_per_opening": cell.average_minutes_per_opening,
                "longest_opening_minutes": cell.longest_opening_minutes,
                "shortest_opening_minutes": cell.shortest_opening_minutes,
                "probability_of_opening": cell.probability_of_opening,
                "expected_duration_minutes": cell.expected_duration_minutes,
                "confidence": cell.confidence,
                "last_calculated": cell.last_calculated,
            }
        )
    return pd.DataFrame(rows, columns=CELL_COLUMNS)
