"""Compose a single opening prediction for a bridge at a point in time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from bridgewatch.cascade.graph import CascadeGraph
from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent, CellKey
from bridgewatch.streaks.streak_analytics import StreakRecord
from bridgewatch.temporal.hourly_aggregator import AnalyticsCell
from bridgewatch.temporal.seasonal import (
    holiday_adjustment,
    is_rush_hour,
    is_summer,
    is_weekend,
)

logger = logging.getLogger(__name__)

DEFAULT_PROBABILITY = 0.1
DEFAULT_DURATION_MINUTES = 15.0
DEFAULT_REASONING = "No historical data available for this time"

CASCADE_LOOKBACK = timedelta(minutes=30)
CASCADE_BOOST_SCALE = 0.3
STREAK_HORIZON = timedelta(hours=1)
STREAK_BOOST_SCALE = 0.1
HIGH_CASCADE_SHARE = 0.5


@dataclass(frozen=True)
class BridgePrediction:
    bridge_id: int
    bridge_name: str
    probability: float
    expected_duration_minutes: float
    confidence: float
    reasoning: str
    cascade_boost: float = 0.0
    streak_boost: float = 0.0

    @property
    def probability_text(self) -> str:
        if self.probability < 0.0 or self.probability > 1.0:
            return "Unknown"
        if self.probability < 0.1:
            return "Very Low"
        if self.probability < 0.3:
            return "Low"
        if self.probability < 0.6:
            return "Moderate"
        if self.probability < 0.8:
            return "High"
        return "Very High"

    @property
    def confidence_text(self) -> str:
        if self.confidence < 0.0 or self.confidence > 1.0:
            return "Unknown"
        if self.confidence < 0.3:
            return "Low Confidence"
        if self.confidence < 0.7:
            return "Medium Confidence"
        return "High Confidence"

    @property
    def duration_text(self) -> str:
        minutes = self.expected_duration_minutes
        if minutes < 1:
            return "< 1 minute"
        if minutes < 60:
            return f"{int(minutes)} minutes"
        return f"{int(minutes // 60)}h {int(minutes % 60)}m"


def find_matching_cell(
    bridge_id: int,
    cells: Mapping[CellKey, AnalyticsCell],
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
) -> Optional[AnalyticsCell]:
    """Best cell for ``now``'s month, weekday and hour across all years."""
    key = calendar.decompose(now)
    if key is None:
        return None
    candidates = [
        cell
        for cell_key, cell in cells.items()
        if cell_key.entity_id == int(bridge_id)
        and cell_key.month == key.month
        and cell_key.day_of_week == key.day_of_week
        and cell_key.hour == key.hour
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda cell: (cell.confidence, cell.year))


def _cascade_boost(
    bridge_id: int,
    graph: Optional[CascadeGraph],
    recent_events: Iterable[BridgeEvent],
    now_s: float,
    calendar: AnalyticsCalendar,
) -> float:
    if graph is None:
        return 0.0
    boost = 0.0
    for event in recent_events:
        if event.entity_id == int(bridge_id):
            continue
        opened = calendar.epoch_seconds(event.open_time)
        if opened is None or not 0.0 <= now_s - opened <= CASCADE_LOOKBACK.total_seconds():
            continue
        edge = graph.edge(event.entity_id, bridge_id)
        if edge is not None:
            boost = max(boost, edge.cascade_strength * CASCADE_BOOST_SCALE)
    return boost


def _streak_due(streak: Optional[StreakRecord], now_s: float, calendar: AnalyticsCalendar) -> bool:
    if streak is None or streak.next_predicted_opening is None:
        return False
    predicted = calendar.epoch_seconds(streak.next_predicted_opening)
    if predicted is None:
        return False
    return 0.0 <= predicted - now_s <= STREAK_HORIZON.total_seconds()


def _reasoning(
    cell: AnalyticsCell,
    calendar: AnalyticsCalendar,
    *,
    cascade_boost: float,
    graph: Optional[CascadeGraph],
    streak_due: bool,
) -> str:
    text = (
        f"Based on {cell.opening_count} historical openings on "
        f"{calendar.weekday_name(cell.day_of_week)}s at {calendar.hour_label(cell.hour)}"
    )
    if is_summer(cell.month):
        text += " (summer recreational pattern)"
    if is_weekend(cell.day_of_week):
        text += " (weekend pattern)"
    if is_rush_hour(cell.day_of_week, cell.hour):
        text += " (rush hour period)"
    holiday = holiday_adjustment(cell.month, cell.day_of_week)
    if holiday > 0:
        text += f" (holiday adjustment +{int(round(holiday * 100))}%)"
    if cascade_boost > 0:
        text += " (cascade effect detected from recent bridge activity)"
    if graph is not None:
        if graph.influence(cell.entity_id) > HIGH_CASCADE_SHARE:
            text += " (high cascade influence bridge)"
        if graph.susceptibility(cell.entity_id) > HIGH_CASCADE_SHARE:
            text += " (high cascade susceptibility)"
    if streak_due:
        text += " (streak history suggests an opening within the hour)"
    return text


def compose_prediction(
    bridge_id: int,
    cells: Mapping[CellKey, AnalyticsCell],
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
    bridge_name: Optional[str] = None,
    streak: Optional[StreakRecord] = None,
    cascade_graph: Optional[CascadeGraph] = None,
    recent_events: Iterable[BridgeEvent] = (),
) -> BridgePrediction:
    """Merge the matching cell with optional streak and cascade signals.

    Without a matching cell the fixed low-information default is returned; the
    composer never raises for missing upstream data.
    """
    cell = find_matching_cell(bridge_id, cells, now=now, calendar=calendar)
    now_s = calendar.epoch_seconds(now)
    if cell is None or now_s is None:
        logger.debug("No matching cell for bridge %s at %s", bridge_id, now)
        return BridgePrediction(
            bridge_id=int(bridge_id),
            bridge_name=bridge_name or (streak.bridge_name if streak else ""),
            probability=DEFAULT_PROBABILITY,
            expected_duration_minutes=DEFAULT_DURATION_MINUTES,
            confidence=0.0,
            reasoning=DEFAULT_REASONING,
        )

    cascade_boost = _cascade_boost(bridge_id, cascade_graph, recent_events, now_s, calendar)
    probability = min(cell.probability_of_opening + cascade_boost, 1.0)

    confidence = cell.confidence
    streak_boost = 0.0
    streak_due = _streak_due(streak, now_s, calendar)
    if streak_due:
        streak_boost = STREAK_BOOST_SCALE * streak.confidence_level
        probability = min(probability + streak_boost, 1.0)
    if streak is not None and streak.confidence_level > 0:
        confidence = (cell.confidence + streak.confidence_level) / 2.0

    return BridgePrediction(
        bridge_id=int(bridge_id),
        bridge_name=bridge_name or cell.entity_name,
        probability=probability,
        expected_duration_minutes=cell.expected_duration_minutes,
        confidence=min(max(confidence, 0.0), 1.0),
        reasoning=_reasoning(
            cell,
            calendar,
            cascade_boost=cascade_boost,
            graph=cascade_graph,
            streak_due=streak_due,
        ),
        cascade_boost=cascade_boost,
        streak_boost=streak_boost,
    )
