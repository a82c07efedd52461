"""Explicit calendar used to bucket and order event timestamps."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from .domain_types import CalendarKey

DEFAULT_TIMEZONE = "America/Los_Angeles"
WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


class AnalyticsCalendar:
    """Maps timestamps onto local calendar components for a fixed timezone.

    Aware timestamps are converted into the calendar zone; naive timestamps are
    read as wall-clock time in that zone. The host timezone never enters the
    computation, so results are reproducible across machines.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        try:
            self._tz: tzinfo = ZoneInfo(str(timezone))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {timezone!r}") from exc
        self.timezone = str(timezone)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"AnalyticsCalendar(timezone={self.timezone!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AnalyticsCalendar) and other.timezone == self.timezone

    def __hash__(self) -> int:
        return hash(self.timezone)

    @property
    def tz(self) -> tzinfo:
        return self._tz

    # ------------------------------------------------------------------ timing
    def localize(self, ts: object) -> Optional[datetime]:
        """Return ``ts`` as an aware datetime in the calendar zone, or None."""
        if not isinstance(ts, datetime) or pd.isna(ts):
            return None
        try:
            if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
                return ts.replace(tzinfo=self._tz)
            return ts.astimezone(self._tz)
        except (OverflowError, ValueError, OSError):
            return None

    def decompose(self, ts: object) -> Optional[CalendarKey]:
        """Return (year, month, day_of_week, hour) or None if ``ts`` is unusable."""
        local = self.localize(ts)
        if local is None:
            return None
        # isoweekday(): Monday = 1 ... Sunday = 7 -> Sunday = 1 ... Saturday = 7
        day_of_week = local.isoweekday() % 7 + 1
        return CalendarKey(
            year=local.year, month=local.month, day_of_week=day_of_week, hour=local.hour
        )

    def epoch_seconds(self, ts: object) -> Optional[float]:
        local = self.localize(ts)
        if local is None:
            return None
        try:
            return local.timestamp()
        except (OverflowError, ValueError, OSError):
            return None

    def local_date(self, ts: object) -> Optional[date]:
        local = self.localize(ts)
        return local.date() if local is not None else None

    def start_of_week(self, day: date) -> date:
        """Sunday that starts the week containing ``day``."""
        return day - timedelta(days=day.isoweekday() % 7)

    # --------------------------------------------------------------- formatting
    @staticmethod
    def weekday_name(day_of_week: int) -> str:
        return WEEKDAY_NAMES[(int(day_of_week) - 1) % 7]

    @staticmethod
    def hour_label(hour: int) -> str:
        hour = int(hour) % 24
        if hour == 0:
            return "12 AM"
        if hour < 12:
            return f"{hour} AM"
        if hour == 12:
            return "12 PM"
        return f"{hour - 12} PM"


def days_spanned(first: date, last: date) -> int:
    """Number of calendar days from ``first`` to ``last`` inclusive."""
    return abs((last - first).days) + 1
