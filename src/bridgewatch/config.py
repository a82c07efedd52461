from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping

import yaml

from bridgewatch.events.calendar import DEFAULT_TIMEZONE, AnalyticsCalendar

logger = logging.getLogger(__name__)


def _positive(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{label} must be numeric, got {value!r}")
    number = float(value)
    if number <= 0:
        raise ValueError(f"{label} must be positive: {number}")
    return number


@dataclass(frozen=True)
class EngineConfig:
    """Tunables shared by the aggregation, streak and cascade engines."""

    timezone: str = DEFAULT_TIMEZONE
    streak_lookback_days: float = 30.0
    champion_lookback_days: float = 7.0
    cascade_window_minutes: float = 30.0
    cascade_min_strength: float = 0.4
    alert_lookback_minutes: float = 30.0
    alert_horizon_minutes: float = 15.0

    def __post_init__(self) -> None:
        if not isinstance(self.timezone, str) or not self.timezone.strip():
            raise TypeError("timezone must be a non-empty IANA zone name")
        # Raises ValueError for unknown zones.
        AnalyticsCalendar(self.timezone)
        for name in (
            "streak_lookback_days",
            "champion_lookback_days",
            "cascade_window_minutes",
            "alert_lookback_minutes",
            "alert_horizon_minutes",
        ):
            object.__setattr__(self, name, _positive(getattr(self, name), name))
        strength = self.cascade_min_strength
        if isinstance(strength, bool) or not isinstance(strength, (int, float)):
            raise TypeError(f"cascade_min_strength must be numeric, got {strength!r}")
        if not 0.0 < float(strength) <= 1.0:
            raise ValueError(f"cascade_min_strength must be within (0, 1]: {strength}")
        object.__setattr__(self, "cascade_min_strength", float(strength))

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "EngineConfig":
        if not isinstance(data, Mapping):
            raise TypeError("Engine config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown engine config keys: %s", ", ".join(map(str, unknown)))
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Engine config YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, Mapping):
            raise TypeError("Engine config YAML must contain a mapping at the top level")
        return cls.from_mapping(data)

    def to_yaml(self, path: str | Path) -> None:
        output: Dict[str, object] = asdict(self)
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(output, handle, sort_keys=True)

    def calendar(self) -> AnalyticsCalendar:
        return AnalyticsCalendar(self.timezone)

    @property
    def streak_lookback(self) -> timedelta:
        return timedelta(days=self.streak_lookback_days)

    @property
    def champion_lookback(self) -> timedelta:
        return timedelta(days=self.champion_lookback_days)


__all__ = ["EngineConfig"]
