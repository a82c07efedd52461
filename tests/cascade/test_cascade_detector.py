from __future__ import annotations

import random
from datetime import datetime, timedelta

import pandas as pd
import pytest

from bridgewatch.cascade.cascade_detector import (
    EDGE_COLUMNS,
    CascadeEdge,
    cascade_pair_stats,
    classify_cascade_type,
    detect_cascade_edges,
    edges_to_dataframe,
)
from bridgewatch.events.calendar import AnalyticsCalendar
from bridgewatch.events.domain_types import BridgeEvent

CALENDAR = AnalyticsCalendar("America/Los_Angeles")
T0 = datetime(2025, 6, 2, 6, 0)


def _event(entity_id: int, open_time: datetime, name: str = "") -> BridgeEvent:
    return BridgeEvent(
        entity_id=entity_id,
        entity_name=name or f"Bridge {entity_id}",
        entity_type="Bridge",
        open_time=open_time,
        close_time=open_time + timedelta(minutes=8),
        minutes_open=8.0,
    )


def _trigger_target_events():
    events = []
    for i in range(5):
        trigger = T0 + timedelta(hours=3 * i)
        events.append(_event(1, trigger, name="Fremont"))
        if i < 4:
            events.append(_event(2, trigger + timedelta(minutes=10), name="Ballard"))
    return events


def test_strength_and_delay_for_directed_pair():
    edges = detect_cascade_edges(_trigger_target_events(), calendar=CALENDAR)
    assert len(edges) == 1
    edge = edges[0]
    assert (edge.trigger_bridge_id, edge.target_bridge_id) == (1, 2)
    assert (edge.trigger_bridge_name, edge.target_bridge_name) == ("Fremont", "Ballard")
    assert edge.matches == 4
    assert edge.opportunities == 5
    assert edge.cascade_strength == pytest.approx(0.8)
    assert edge.delay_minutes == pytest.approx(10.0)
    assert edge.cascade_type == "short-term"


def test_reverse_direction_is_computed_independently():
    events = _trigger_target_events()
    forward = cascade_pair_stats(events, 1, 2, calendar=CALENDAR)
    backward = cascade_pair_stats(events, 2, 1, calendar=CALENDAR)
    assert forward.strength == pytest.approx(0.8)
    # Fremont next opens ~2h50m after each Ballard opening.
    assert backward.matches == 0
    assert backward.strength == 0.0
    assert backward.mean_delay_minutes == 0.0


def test_no_target_openings_gives_zero_strength():
    events = [_event(1, T0), _event(1, T0 + timedelta(hours=1))]
    stats = cascade_pair_stats(events, 1, 2, calendar=CALENDAR)
    assert stats.opportunities == 2
    assert stats.strength == 0.0
    assert detect_cascade_edges(events, calendar=CALENDAR) == []


def test_window_is_open_left_closed_right():
    events = [
        _event(1, T0),
        _event(2, T0),  # simultaneous: not a cascade
        _event(1, T0 + timedelta(hours=2)),
        _event(2, T0 + timedelta(hours=2, minutes=30)),  # exactly at the window edge
    ]
    stats = cascade_pair_stats(events, 1, 2, calendar=CALENDAR, window_minutes=30)
    assert stats.matches == 1
    assert stats.mean_delay_minutes == pytest.approx(30.0)


def test_delay_uses_first_target_opening():
    events = [
        _event(1, T0),
        _event(2, T0 + timedelta(minutes=4)),
        _event(2, T0 + timedelta(minutes=20)),
    ]
    (edge,) = [e for e in detect_cascade_edges(events, calendar=CALENDAR) if e.trigger_bridge_id == 1]
    assert edge.matches == 1
    assert edge.delay_minutes == pytest.approx(4.0)
    assert edge.cascade_type == "immediate"


def test_threshold_filters_edges():
    events = _trigger_target_events()
    assert detect_cascade_edges(events, calendar=CALENDAR, min_strength=0.9) == []
    assert len(detect_cascade_edges(events, calendar=CALENDAR, min_strength=0.8)) == 1


def test_invalid_parameters_raise():
    with pytest.raises(ValueError):
        detect_cascade_edges([], calendar=CALENDAR, window_minutes=0)
    with pytest.raises(ValueError):
        detect_cascade_edges([], calendar=CALENDAR, min_strength=0.0)
    with pytest.raises(ValueError):
        detect_cascade_edges([], calendar=CALENDAR, min_strength=1.5)


def test_edges_are_sorted_and_order_independent():
    events = []
    for i in range(6):
        base = T0 + timedelta(hours=4 * i)
        events.append(_event(3, base))
        events.append(_event(1, base + timedelta(minutes=2)))
        events.append(_event(2, base + timedelta(minutes=12)))
    expected = detect_cascade_edges(events, calendar=CALENDAR)
    pairs = [(edge.trigger_bridge_id, edge.target_bridge_id) for edge in expected]
    assert pairs == sorted(pairs)
    assert (3, 1) in pairs and (1, 2) in pairs and (3, 2) in pairs
    assert all(edge.trigger_bridge_id != edge.target_bridge_id for edge in expected)

    shuffled = list(events)
    random.Random(11).shuffle(shuffled)
    assert detect_cascade_edges(shuffled, calendar=CALENDAR) == expected


def test_cascade_type_boundaries():
    assert classify_cascade_type(0.0) == "immediate"
    assert classify_cascade_type(4.99) == "immediate"
    assert classify_cascade_type(5.0) == "short-term"
    assert classify_cascade_type(15.0) == "medium-term"
    assert classify_cascade_type(30.0) == "delayed"


def test_self_loop_edge_is_rejected():
    with pytest.raises(ValueError):
        CascadeEdge(1, "Fremont", 1, "Fremont", 0.5, 3.0, 1, 2)


def test_edges_to_dataframe():
    df = edges_to_dataframe(detect_cascade_edges(_trigger_target_events(), calendar=CALENDAR))
    assert list(df.columns) == EDGE_COLUMNS
    assert df.loc[0, "cascade_type"] == "short-term"


def test_unusable_open_time_is_ignored(caplog):
    broken = BridgeEvent(
        entity_id=2,
        entity_name="Bridge 2",
        entity_type="Bridge",
        open_time=pd.NaT,
        minutes_open=8.0,
    )
    events = []
    for day in range(4):
        start = T0 + timedelta(days=day)
        events += [_event(1, start), _event(2, start + timedelta(minutes=4))]
    expected = detect_cascade_edges(events, calendar=CALENDAR)
    with caplog.at_level("WARNING"):
        edges = detect_cascade_edges(events + [broken], calendar=CALENDAR)
    assert edges == expected
    assert [(edge.trigger_bridge_id, edge.target_bridge_id) for edge in edges] == [(1, 2)]
    assert edges[0].matches == 4
    assert "skipped 1 events" in caplog.text
