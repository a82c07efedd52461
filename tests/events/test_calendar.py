from __future__ import annotations

from datetime import date, datetime, timezone

import pandas as pd
import pytest

from bridgewatch.events.calendar import AnalyticsCalendar, days_spanned
from bridgewatch.events.domain_types import BridgeEvent, CalendarKey


def test_decompose_uses_sunday_first_weekdays():
    calendar = AnalyticsCalendar("America/Los_Angeles")
    # 2025-06-01 is a Sunday, 2025-06-07 a Saturday.
    assert calendar.decompose(datetime(2025, 6, 1, 9, 30)) == CalendarKey(2025, 6, 1, 9)
    assert calendar.decompose(datetime(2025, 6, 2, 0, 0)).day_of_week == 2
    assert calendar.decompose(datetime(2025, 6, 7, 23, 59)).day_of_week == 7


def test_aware_timestamps_convert_into_calendar_zone():
    calendar = AnalyticsCalendar("America/Los_Angeles")
    # 03:00 UTC on a Monday is 20:00 PDT on the previous Sunday.
    key = calendar.decompose(datetime(2025, 6, 2, 3, 0, tzinfo=timezone.utc))
    assert key == CalendarKey(2025, 6, 1, 20)


def test_naive_timestamps_are_wall_clock_in_zone():
    la = AnalyticsCalendar("America/Los_Angeles")
    utc = AnalyticsCalendar("UTC")
    ts = datetime(2025, 6, 1, 12, 0)
    assert la.decompose(ts).hour == 12
    assert utc.decompose(ts).hour == 12
    assert la.epoch_seconds(ts) - utc.epoch_seconds(ts) == pytest.approx(7 * 3600)


def test_decompose_rejects_unusable_values():
    calendar = AnalyticsCalendar()
    assert calendar.decompose("2025-06-01") is None
    assert calendar.decompose(None) is None
    assert calendar.decompose(pd.NaT) is None


def test_unknown_timezone_raises():
    with pytest.raises(ValueError):
        AnalyticsCalendar("Mars/Olympus_Mons")


def test_week_and_label_helpers():
    calendar = AnalyticsCalendar()
    assert calendar.start_of_week(date(2025, 6, 4)) == date(2025, 6, 1)
    assert calendar.start_of_week(date(2025, 6, 1)) == date(2025, 6, 1)
    assert calendar.weekday_name(1) == "Sunday"
    assert calendar.weekday_name(7) == "Saturday"
    assert calendar.hour_label(0) == "12 AM"
    assert calendar.hour_label(12) == "12 PM"
    assert calendar.hour_label(15) == "3 PM"
    assert days_spanned(date(2025, 6, 1), date(2025, 6, 1)) == 1
    assert days_spanned(date(2025, 6, 1), date(2025, 6, 30)) == 30


def test_bridge_event_validation():
    with pytest.raises(ValueError):
        BridgeEvent(1, "Fremont", "Bridge", datetime(2025, 6, 1, 10), minutes_open=-1)
    with pytest.raises(ValueError):
        BridgeEvent(
            1,
            "Fremont",
            "Bridge",
            datetime(2025, 6, 1, 10),
            close_time=datetime(2025, 6, 1, 9),
        )
    event = BridgeEvent(
        1,
        "Fremont",
        "Bridge",
        datetime(2025, 6, 1, 10),
        close_time=datetime(2025, 6, 1, 10, 30),
        minutes_open=30,
    )
    assert event.duration_minutes == pytest.approx(30.0)
    assert not event.is_currently_open
