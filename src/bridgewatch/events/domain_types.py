"""Core dataclasses shared across the analytics packages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class BridgeEvent:
    """Single historical opening of a drawbridge as supplied by the event feed."""

    entity_id: int
    entity_name: str
    entity_type: str
    open_time: datetime
    close_time: Optional[datetime] = None  # None while the span is still open
    minutes_open: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_id", int(self.entity_id))
        object.__setattr__(self, "minutes_open", float(self.minutes_open))
        if self.minutes_open < 0:
            raise ValueError(
                f"minutes_open must be non-negative for bridge {self.entity_id}: {self.minutes_open}"
            )
        if isinstance(self.open_time, datetime) and isinstance(self.close_time, datetime):
            try:
                reversed_span = self.close_time < self.open_time
            except TypeError:
                # Mixed naive/aware timestamps; ordering is resolved by the calendar.
                reversed_span = False
            if reversed_span:
                raise ValueError(
                    f"close_time precedes open_time for bridge {self.entity_id} "
                    f"({self.open_time} > {self.close_time})"
                )

    @property
    def is_currently_open(self) -> bool:
        return self.close_time is None

    @property
    def effective_close_time(self) -> datetime:
        """Close time, or the open time for spans that never closed."""
        return self.close_time if self.close_time is not None else self.open_time

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.close_time is None:
            return None
        return (self.close_time - self.open_time).total_seconds() / 60.0


@dataclass(frozen=True, order=True)
class CalendarKey:
    """Calendar components used for bucketing (Sunday = 1 ... Saturday = 7)."""

    year: int
    month: int
    day_of_week: int
    hour: int


@dataclass(frozen=True, order=True)
class CellKey:
    """Bucket identity: one bridge at one calendar position."""

    entity_id: int
    year: int
    month: int
    day_of_week: int
    hour: int

    @classmethod
    def for_bridge(cls, entity_id: int, key: CalendarKey) -> "CellKey":
        return cls(
            entity_id=int(entity_id),
            year=key.year,
            month=key.month,
            day_of_week=key.day_of_week,
            hour=key.hour,
        )

    @property
    def calendar_key(self) -> CalendarKey:
        return CalendarKey(self.year, self.month, self.day_of_week, self.hour)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.entity_id}-{self.year}-{self.month}-{self.day_of_week}-{self.hour}"
