from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from bridgewatch.cascade.cascade_detector import CascadeEdge, edges_to_dataframe
from bridgewatch.cascade.graph import CascadeGraph
from bridgewatch.cascade.insights import cascade_alerts, generate_cascade_insights
from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent

CALENDAR = AnalyticsCalendar("America/Los_Angeles")
NOW = datetime(2025, 6, 2, 12, 0)

NAMES = {1: "Fremont", 2: "Ballard", 3: "University", 4: "Montlake"}


def _edge(trigger: int, target: int, strength: float, delay: float = 10.0, matches: int = 4) -> CascadeEdge:
    return CascadeEdge(
        trigger_bridge_id=trigger,
        trigger_bridge_name=NAMES[trigger],
        target_bridge_id=target,
        target_bridge_name=NAMES[target],
        cascade_strength=strength,
        delay_minutes=delay,
        matches=matches,
        opportunities=5,
    )


def _graph() -> CascadeGraph:
    return CascadeGraph.from_edges(
        [
            _edge(1, 2, 0.8, delay=3.0, matches=8),
            _edge(1, 3, 0.6, delay=2.0, matches=6),
            _edge(2, 3, 0.5, delay=20.0, matches=5),
            _edge(4, 3, 0.7, delay=12.0, matches=7),
        ]
    )


def test_adjacency_and_lookup():
    graph = _graph()
    assert len(graph) == 4
    assert [edge.target_bridge_id for edge in graph.get_outgoing(1)] == [2, 3]
    assert [edge.trigger_bridge_id for edge in graph.get_incoming(3)] == [1, 2, 4]
    assert graph.get_outgoing(3) == []
    assert graph.edge(1, 2).cascade_strength == pytest.approx(0.8)
    assert graph.edge(2, 1) is None
    assert graph.bridge_ids == [1, 2, 3, 4]


def test_influence_and_susceptibility_are_normalised():
    graph = _graph()
    assert graph.influence(1) == pytest.approx(1.0)
    assert graph.influence(4) == pytest.approx(0.7 / 1.4)
    assert graph.influence(3) == 0.0
    assert graph.susceptibility(3) == pytest.approx(1.0)
    assert graph.susceptibility(2) == pytest.approx(0.8 / 1.8)
    empty = CascadeGraph.from_edges([])
    assert empty.influence(1) == 0.0
    assert empty.susceptibility(1) == 0.0


def test_primary_target_ties_go_to_lower_id():
    graph = CascadeGraph.from_edges([_edge(4, 3, 0.5), _edge(4, 2, 0.5), _edge(4, 1, 0.4)])
    assert graph.primary_target(4) == 2
    assert _graph().primary_target(1) == 2
    assert _graph().primary_target(3) is None


def test_duplicate_edges_rejected():
    with pytest.raises(ValueError):
        CascadeGraph.from_edges([_edge(1, 2, 0.5), _edge(1, 2, 0.6)])


def test_graph_round_trips_through_edge_csv(tmp_path):
    graph = _graph()
    path = tmp_path / "cascade_edges.csv"
    edges_to_dataframe(list(graph.edges.values())).to_csv(path, index=False)
    loaded = CascadeGraph.from_csv(str(path))
    assert loaded.edges == graph.edges


def test_insights_for_trigger_and_target():
    graph = _graph()
    fremont = generate_cascade_insights(1, graph)
    assert fremont == [
        "High cascade influence bridge - frequently triggers other bridge openings",
        "Most frequently triggers Ballard (8 cascade events)",
        "Tends to trigger immediate cascade responses (< 5 minutes)",
    ]
    university = generate_cascade_insights(3, graph)
    assert university == [
        "High cascade susceptibility - often opens in response to other bridges",
        "Most frequently triggered by Montlake (7 cascade events)",
    ]
    assert generate_cascade_insights(99, graph) == []


def _trigger(entity_id: int, opened: datetime, closed: bool = True) -> BridgeEvent:
    return BridgeEvent(
        entity_id=entity_id,
        entity_name=NAMES[entity_id],
        entity_type="Bridge",
        open_time=opened,
        close_time=opened + timedelta(minutes=1) if closed else None,
        minutes_open=1.0 if closed else 0.0,
    )


def test_alerts_cover_completed_recent_triggers():
    graph = _graph()
    recent = [
        _trigger(4, NOW - timedelta(minutes=5)),  # 4 -> 3 expected in 7 minutes
        _trigger(2, NOW - timedelta(minutes=10)),  # 2 -> 3 expected in 10 minutes
        _trigger(1, NOW - timedelta(minutes=4), closed=False),  # still open: ignored
        _trigger(1, NOW - timedelta(minutes=45)),  # outside the lookback
    ]
    alerts = cascade_alerts(recent, graph, now=NOW, calendar=CALENDAR)
    assert [(a.trigger_bridge, a.target_bridge) for a in alerts] == [
        ("Montlake", "University"),
        ("Ballard", "University"),
    ]
    first = alerts[0]
    assert first.expected_time == CALENDAR.localize(NOW + timedelta(minutes=7))
    assert first.minutes_until(CALENDAR.localize(NOW)) == 7
    assert first.probability_text == "High"
    assert first.cascade_type == "short-term"
    assert alerts[1].probability_text == "Moderate"


def test_alerts_skip_cascades_already_due():
    graph = _graph()
    recent = [_trigger(1, NOW - timedelta(minutes=3))]  # both targets expected in the past
    assert cascade_alerts(recent, graph, now=NOW, calendar=CALENDAR) == []


def test_alert_countdown_accepts_wall_clock_time():
    alerts = cascade_alerts(
        [_trigger(4, NOW - timedelta(minutes=5))], _graph(), now=NOW, calendar=CALENDAR
    )
    (alert,) = alerts
    assert alert.minutes_until(NOW) == 7
    assert alert.minutes_until(NOW + timedelta(minutes=2)) == 5
