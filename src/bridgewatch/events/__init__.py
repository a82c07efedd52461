"""Event model, calendar and snapshot loaders."""

from .calendar import AnalyticsCalendar, DEFAULT_TIMEZONE, days_spanned
from .data_sources import (
    event_from_record,
    events_from_records,
    events_to_dataframe,
    load_events,
    load_events_csv,
    load_events_json,
    parse_timestamp,
)
from .domain_types import BridgeEvent, CalendarKey, CellKey

__all__ = [
    "AnalyticsCalendar",
    "BridgeEvent",
    "CalendarKey",
    "CellKey",
    "DEFAULT_TIMEZONE",
    "days_spanned",
    "event_from_record",
    "events_from_records",
    "events_to_dataframe",
    "load_events",
    "load_events_csv",
    "load_events_json",
    "parse_timestamp",
]
