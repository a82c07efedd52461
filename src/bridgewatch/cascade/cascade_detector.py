"""Directed cross-bridge cascade detection over an event snapshot."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MINUTES = 30.0
DEFAULT_MIN_STRENGTH = 0.4


def classify_cascade_type(delay_minutes: float) -> str:
    if delay_minutes < 5:
        return "immediate"
    if delay_minutes < 15:
        return "short-term"
    if delay_minutes < 30:
        return "medium-term"
    return "delayed"


@dataclass(frozen=True)
class CascadePairStats:
    trigger_bridge_id: int
    target_bridge_id: int
    matches: int
    opportunities: int
    mean_delay_minutes: float

    @property
    def strength(self) -> float:
        return self.matches / max(self.opportunities, 1)


@dataclass(frozen=True)
class CascadeEdge:
    """Observed tendency of ``target`` to open shortly after ``trigger``."""

    trigger_bridge_id: int
    trigger_bridge_name: str
    target_bridge_id: int
    target_bridge_name: str
    cascade_strength: float
    delay_minutes: float
    matches: int
    opportunities: int

    def __post_init__(self) -> None:
        if self.trigger_bridge_id == self.target_bridge_id:
            raise ValueError(f"Cascade edge cannot loop on bridge {self.trigger_bridge_id}")

    @property
    def cascade_type(self) -> str:
        return classify_cascade_type(self.delay_minutes)


# ---- indexing
class _OpeningIndex:
    """Sorted open times (epoch seconds) per bridge plus a display name."""

    def __init__(self, events: Iterable[BridgeEvent], calendar: AnalyticsCalendar):
        stamped: List[Tuple[float, int, str]] = []
        skipped = 0
        for event in events:
            opened = calendar.epoch_seconds(event.open_time)
            if opened is None:
                skipped += 1
                continue
            stamped.append((opened, event.entity_id, event.entity_name))
        if skipped:
            logger.warning("Cascade scan skipped %d events with unusable open times", skipped)
        stamped.sort(key=lambda item: (item[0], item[1]))

        times: Dict[int, List[float]] = defaultdict(list)
        names: Dict[int, str] = {}
        for opened, entity_id, name in stamped:
            times[entity_id].append(opened)
            if entity_id not in names or name < names[entity_id]:
                names[entity_id] = name
        self.names = names
        self.times: Dict[int, np.ndarray] = {
            entity_id: np.asarray(values, dtype=float) for entity_id, values in times.items()
        }

    @property
    def bridge_ids(self) -> List[int]:
        return sorted(self.times)

    def openings(self, entity_id: int) -> np.ndarray:
        return self.times.get(int(entity_id), np.empty(0, dtype=float))


def _pair_stats(
    trigger_times: np.ndarray,
    target_times: np.ndarray,
    window_seconds: float,
    trigger_id: int,
    target_id: int,
) -> CascadePairStats:
    opportunities = int(trigger_times.size)
    if opportunities == 0 or target_times.size == 0:
        return CascadePairStats(trigger_id, target_id, 0, opportunities, 0.0)

    # First target opening strictly after each trigger opening.
    idx = np.searchsorted(target_times, trigger_times, side="right")
    in_range = idx < target_times.size
    following = np.full(trigger_times.shape, np.inf)
    following[in_range] = target_times[idx[in_range]]
    delays = following - trigger_times
    matched = delays <= window_seconds
    matches = int(matched.sum())
    mean_delay = float(delays[matched].mean()) / 60.0 if matches else 0.0
    return CascadePairStats(trigger_id, target_id, matches, opportunities, mean_delay)


def _validate(window_minutes: float, min_strength: float) -> None:
    if window_minutes <= 0:
        raise ValueError("window_minutes must be positive.")
    if not 0.0 < min_strength <= 1.0:
        raise ValueError("min_strength must be within (0, 1].")


# ---- public API
def cascade_pair_stats(
    events: Iterable[BridgeEvent],
    trigger_id: int,
    target_id: int,
    *,
    calendar: AnalyticsCalendar,
    window_minutes: float = DEFAULT_WINDOW_MINUTES,
) -> CascadePairStats:
    """Raw cascade statistic for one ordered pair, including zero-strength pairs."""
    if window_minutes <= 0:
        raise ValueError("window_minutes must be positive.")
    index = _OpeningIndex(events, calendar)
    return _pair_stats(
        index.openings(trigger_id),
        index.openings(target_id),
        window_minutes * 60.0,
        int(trigger_id),
        int(target_id),
    )


def detect_cascade_edges(
    events: Iterable[BridgeEvent],
    *,
    calendar: AnalyticsCalendar,
    window_minutes: float = DEFAULT_WINDOW_MINUTES,
    min_strength: float = DEFAULT_MIN_STRENGTH,
) -> List[CascadeEdge]:
    """Every directed edge whose strength reaches ``min_strength``.

    Each ordered pair is scored independently, so ``(A, B)`` and ``(B, A)``
    generally differ. Output is sorted by ``(trigger_id, target_id)``.
    """
    _validate(window_minutes, min_strength)
    index = _OpeningIndex(events, calendar)
    window_seconds = window_minutes * 60.0
    bridge_ids = index.bridge_ids

    edges: List[CascadeEdge] = []
    for trigger_id in bridge_ids:
        trigger_times = index.openings(trigger_id)
        for target_id in bridge_ids:
            if target_id == trigger_id:
                continue
            stats = _pair_stats(
                trigger_times, index.openings(target_id), window_seconds, trigger_id, target_id
            )
            if stats.matches == 0 or stats.strength < min_strength:
                continue
            edges.append(
                CascadeEdge(
                    trigger_bridge_id=trigger_id,
                    trigger_bridge_name=index.names[trigger_id],
                    target_bridge_id=target_id,
                    target_bridge_name=index.names[target_id],
                    cascade_strength=stats.strength,
                    delay_minutes=stats.mean_delay_minutes,
                    matches=stats.matches,
                    opportunities=stats.opportunities,
                )
            )

    logger.info(
        "Cascade scan: %d bridges, %d ordered pairs, %d edges >= %.2f",
        len(bridge_ids),
        len(bridge_ids) * max(len(bridge_ids) - 1, 0),
        len(edges),
        min_strength,
    )
    return edges


EDGE_COLUMNS = [
    "trigger_bridge_id",
    "trigger_bridge_name",
    "target_bridge_id",
    "target_bridge_name",
    "cascade_strength",
    "delay_minutes",
    "matches",
    "opportunities",
    "cascade_type",
]


def edges_to_dataframe(edges: Sequence[CascadeEdge]) -> pd.DataFrame:
    rows = [
        {
            "trigger_bridge_id": edge.trigger_bridge_id,
            "trigger_bridge_name": edge.trigger_bridge_name,
            "target_bridge_id": edge.target_bridge_id,
            "target_bridge_name": edge.target_bridge_name,
            "cascade_strength": edge.cascade_strength,
            "delay_minutes": edge.delay_minutes,
            "matches": edge.matches,
            "opportunities": edge.opportunities,
            "cascade_type": edge.cascade_type,
        }
        for edge in edges
    ]
    return pd.DataFrame(rows, columns=EDGE_COLUMNS)
