"""Human-readable cascade insights and short-horizon cascade alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List

from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent

from .cascade_detector import DEFAULT_MIN_STRENGTH
from .graph import CascadeGraph

HIGH_AVERAGE_STRENGTH = 0.5
IMMEDIATE_DELAY_MINUTES = 5.0


def probability_label(probability: float) -> str:
    if probability < 0.0 or probability > 1.0:
        return "Unknown"
    if probability < 0.3:
        return "Low"
    if probability < 0.6:
        return "Moderate"
    if probability < 0.8:
        return "High"
    return "Very High"


@dataclass(frozen=True)
class CascadeAlert:
    target_bridge: str
    trigger_bridge: str
    expected_time: datetime
    probability: float
    cascade_type: str

    @property
    def probability_text(self) -> str:
        return probability_label(self.probability)

    def minutes_until(self, now: datetime) -> int:
        if now.tzinfo is None:
            # naive times are wall-clock in the alert's calendar zone
            now = now.replace(tzinfo=self.expected_time.tzinfo)
        return int((self.expected_time - now).total_seconds() // 60)


def generate_cascade_insights(bridge_id: int, graph: CascadeGraph) -> List[str]:
    insights: List[str] = []
    triggered = graph.get_outgoing(bridge_id)
    received = graph.get_incoming(bridge_id)

    if triggered:
        average = sum(edge.cascade_strength for edge in triggered) / len(triggered)
        if average > HIGH_AVERAGE_STRENGTH:
            insights.append(
                "High cascade influence bridge - frequently triggers other bridge openings"
            )
        top = min(triggered, key=lambda e: (-e.matches, e.target_bridge_id))
        insights.append(
            f"Most frequently triggers {top.target_bridge_name} ({top.matches} cascade events)"
        )

    if received:
        average = sum(edge.cascade_strength for edge in received) / len(received)
        if average > HIGH_AVERAGE_STRENGTH:
            insights.append(
                "High cascade susceptibility - often opens in response to other bridges"
            )
        top = min(received, key=lambda e: (-e.matches, e.trigger_bridge_id))
        insights.append(
            f"Most frequently triggered by {top.trigger_bridge_name} ({top.matches} cascade events)"
        )

    immediate = [edge for edge in triggered if edge.delay_minutes < IMMEDIATE_DELAY_MINUTES]
    if triggered and len(immediate) * 2 > len(triggered):
        insights.append("Tends to trigger immediate cascade responses (< 5 minutes)")
    return insights


def cascade_alerts(
    recent_events: Iterable[BridgeEvent],
    graph: CascadeGraph,
    *,
    now: datetime,
    calendar: AnalyticsCalendar,
    lookback_minutes: float = 30.0,
    horizon_minutes: float = 15.0,
    min_strength: float = DEFAULT_MIN_STRENGTH,
) -> List[CascadeAlert]:
    """Cascades expected within ``horizon_minutes`` of ``now``.

    Only completed trigger openings that started within ``lookback_minutes``
    are considered.
    """
    now_local = calendar.localize(now)
    now_s = calendar.epoch_seconds(now)
    if now_local is None or now_s is None:
        raise ValueError(f"Cannot place reference time {now!r} on the calendar")

    alerts: List[CascadeAlert] = []
    for trigger in recent_events:
        if trigger.is_currently_open:
            continue
        opened = calendar.epoch_seconds(trigger.open_time)
        if opened is None or not 0.0 <= now_s - opened < lookback_minutes * 60.0:
            continue
        for edge in graph.get_outgoing(trigger.entity_id):
            if edge.cascade_strength < min_strength:
                continue
            expected_s = opened + edge.delay_minutes * 60.0
            if 0.0 < expected_s - now_s < horizon_minutes * 60.0:
                alerts.append(
                    CascadeAlert(
                        target_bridge=edge.target_bridge_name,
                        trigger_bridge=trigger.entity_name,
                        expected_time=now_local + timedelta(seconds=expected_s - now_s),
                        probability=edge.cascade_strength,
                        cascade_type=edge.cascade_type,
                    )
                )
    alerts.sort(key=lambda alert: (alert.expected_time, alert.target_bridge, alert.trigger_bridge))
    return alerts
