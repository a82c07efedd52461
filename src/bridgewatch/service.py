"""High-level API that runs every analytics engine over one event snapshot.

The :class:`BridgeAnalyticsService` ties together temporal aggregation, seasonal
decomposition, streak analytics and cascade detection. Each call to
:meth:`BridgeAnalyticsService.run` is independent: the service holds nothing but
its immutable :class:`~bridgewatch.config.EngineConfig`.

Outputs
-------
:class:`AnalyticsRunResult` carries the value records produced by each engine
plus tidy pandas tables:

1. **cells** / **cell_table**: one :class:`AnalyticsCell` per
   (bridge, year, month, weekday, hour) bucket.
2. **profiles**: seasonal decomposition per cell.
3. **streaks** / **streak_table**: one :class:`StreakRecord` per bridge.
4. **champion**: bridge with the longest current streak over the champion
   lookback, or None for an empty snapshot.
5. **edges** / **edge_table** / **graph**: cascade edges at or above the
   configured strength threshold.

Example Usage
-------------

.. code-block:: python

    from bridgewatch.config import EngineConfig
    from bridgewatch.events import load_events
    from bridgewatch.service import BridgeAnalyticsService

    events = load_events("data/drawbridge_events.csv")
    service = BridgeAnalyticsService(EngineConfig.from_yaml("engine.yaml"))
    result = service.run(events)
    print(result.streak_table.head())
    prediction = service.predict(result, bridge_id=1, now=result.now, recent_events=events)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd

from bridgewatch.cascade.cascade_detector import (
    CascadeEdge,
    detect_cascade_edges,
    edges_to_dataframe,
)
from bridgewatch.cascade.graph import CascadeGraph
from bridgewatch.cascade.insights import CascadeAlert, cascade_alerts
from bridgewatch.config import EngineConfig
from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent, CellKey
from bridgewatch.prediction.prediction_composer import BridgePrediction, compose_prediction
from bridgewatch.streaks.streak_analytics import (
    StreakRecord,
    WeeklyChampion,
    compute_streak_records,
    streaks_to_dataframe,
    weekly_champion,
)
from bridgewatch.temporal.hourly_aggregator import (
    AnalyticsCell,
    aggregate_events,
    cells_to_dataframe,
)
from bridgewatch.temporal.seasonal import SeasonalProfile, decompose_cells

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyticsRunResult:
    """Structured payload returned by :class:`BridgeAnalyticsService.run`."""

    now: datetime
    cells: Dict[CellKey, AnalyticsCell]
    profiles: Dict[CellKey, SeasonalProfile]
    streaks: List[StreakRecord]
    champion: Optional[WeeklyChampion]
    edges: List[CascadeEdge]
    graph: CascadeGraph
    cell_table: pd.DataFrame
    streak_table: pd.DataFrame
    edge_table: pd.DataFrame

    def streak_for(self, bridge_id: int) -> Optional[StreakRecord]:
        for record in self.streaks:
            if record.bridge_id == int(bridge_id):
                return record
        return None


def latest_open_time(
    events: Sequence[BridgeEvent], calendar: AnalyticsCalendar
) -> Optional[datetime]:
    best: Optional[datetime] = None
    best_s: Optional[float] = None
    for event in events:
        stamp = calendar.epoch_seconds(event.open_time)
        if stamp is not None and (best_s is None or stamp > best_s):
            best_s = stamp
            best = calendar.localize(event.open_time)
    return best


class BridgeAnalyticsService:
    """Orchestrates the aggregation, streak and cascade engines.

    Example
    -------
    >>> service = BridgeAnalyticsService(EngineConfig())
    >>> result = service.run(events, now=datetime(2025, 6, 1, 12))
    >>> result.champion.bridge_name
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or EngineConfig()
        self._calendar = self._config.calendar()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def calendar(self) -> AnalyticsCalendar:
        return self._calendar

    def run(
        self, events: Sequence[BridgeEvent], *, now: Optional[datetime] = None
    ) -> AnalyticsRunResult:
        """Run every engine over ``events``.

        Parameters
        ----------
        events:
            Immutable snapshot of historical openings.
        now:
            Reference time for streaks and the champion. Defaults to the latest
            open time in the snapshot so repeated runs agree; an empty snapshot
            without ``now`` is rejected.
        """
        snapshot = list(events)
        if now is None:
            now = latest_open_time(snapshot, self._calendar)
            if now is None:
                raise ValueError("Cannot infer a reference time from an empty snapshot; pass now=")
        logger.info("Running analytics over %d events (now=%s)", len(snapshot), now)

        cells = aggregate_events(snapshot, calendar=self._calendar)
        profiles = decompose_cells(cells)
        streaks = compute_streak_records(
            snapshot,
            now=now,
            calendar=self._calendar,
            lookback=self._config.streak_lookback,
        )
        champion = weekly_champion(
            snapshot,
            now=now,
            calendar=self._calendar,
            lookback=self._config.champion_lookback,
        )
        edges = detect_cascade_edges(
            snapshot,
            calendar=self._calendar,
            window_minutes=self._config.cascade_window_minutes,
            min_strength=self._config.cascade_min_strength,
        )

        return AnalyticsRunResult(
            now=now,
            cells=cells,
            profiles=profiles,
            streaks=streaks,
            champion=champion,
            edges=edges,
            graph=CascadeGraph.from_edges(edges),
            cell_table=cells_to_dataframe(cells),
            streak_table=streaks_to_dataframe(streaks),
            edge_table=edges_to_dataframe(edges),
        )

    def predict(
        self,
        result: AnalyticsRunResult,
        *,
        bridge_id: int,
        now: datetime,
        recent_events: Sequence[BridgeEvent] = (),
    ) -> BridgePrediction:
        return compose_prediction(
            bridge_id,
            result.cells,
            now=now,
            calendar=self._calendar,
            streak=result.streak_for(bridge_id),
            cascade_graph=result.graph,
            recent_events=recent_events,
        )

    def alerts(
        self,
        result: AnalyticsRunResult,
        recent_events: Sequence[BridgeEvent],
        *,
        now: datetime,
    ) -> List[CascadeAlert]:
        return cascade_alerts(
            recent_events,
            result.graph,
            now=now,
            calendar=self._calendar,
            lookback_minutes=self._config.alert_lookback_minutes,
            horizon_minutes=self._config.alert_horizon_minutes,
            min_strength=self._config.cascade_min_strength,
        )


__all__ = ["AnalyticsRunResult", "BridgeAnalyticsService", "latest_open_time"]
