"""Helpers for turning drawbridge feed exports into BridgeEvent snapshots."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .domain_types import BridgeEvent

logger = logging.getLogger(__name__)


# Column names used by the Seattle open-data drawbridge feed.
FEED_COLUMNS: Sequence[str] = [
    "entityid",
    "entityname",
    "entitytype",
    "opendatetime",
    "closedatetime",
    "minutesopen",
    "latitude",
    "longitude",
]

REQUIRED_COLUMNS = {"entityid", "entityname", "entitytype", "opendatetime"}

_TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
)


def parse_timestamp(value: object) -> Optional[datetime]:
    """Parse a feed timestamp; naive results are wall-clock times."""
    if isinstance(value, datetime):
        return None if pd.isna(value) else value
    text = _clean_text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def event_from_record(record: Mapping[str, object]) -> Optional[BridgeEvent]:
    """Build one event from a feed record, or None when it cannot be used."""
    entity_id = _parse_int(record.get("entityid"))
    entity_name = _clean_text(record.get("entityname"))
    entity_type = _clean_text(record.get("entitytype"))
    open_time = parse_timestamp(record.get("opendatetime"))
    if entity_id is None or not entity_name or not entity_type or open_time is None:
        logger.debug("Skipping feed record with missing/invalid fields: %r", dict(record))
        return None

    close_time = parse_timestamp(record.get("closedatetime"))
    minutes_open = _parse_float(record.get("minutesopen"))
    if minutes_open is None:
        minutes_open = 0.0
        if close_time is not None:
            try:
                minutes_open = max((close_time - open_time).total_seconds() / 60.0, 0.0)
            except TypeError:
                minutes_open = 0.0

    try:
        return BridgeEvent(
            entity_id=entity_id,
            entity_name=entity_name,
            entity_type=entity_type,
            open_time=open_time,
            close_time=close_time,
            minutes_open=minutes_open,
            latitude=_parse_float(record.get("latitude")) or 0.0,
            longitude=_parse_float(record.get("longitude")) or 0.0,
        )
    except ValueError as exc:
        logger.debug("Skipping inconsistent feed record for bridge %s: %s", entity_id, exc)
        return None


def events_from_records(records: Iterable[Mapping[str, object]]) -> List[BridgeEvent]:
    """Convert feed records, dropping (and counting) the unusable ones."""
    events: List[BridgeEvent] = []
    skipped = 0
    for record in records:
        if not isinstance(record, Mapping):
            skipped += 1
            continue
        event = event_from_record(record)
        if event is None:
            skipped += 1
            continue
        events.append(event)
    if skipped:
        logger.warning("Skipped %d feed records with missing or invalid fields", skipped)
    logger.info("Parsed %d bridge events", len(events))
    return events


def load_events_json(path: str | Path) -> List[BridgeEvent]:
    """Load a JSON array of feed records (the open-data API response body)."""
    json_path = Path(path)
    if not json_path.exists():
        raise FileNotFoundError(f"Event JSON not found at {json_path}")
    with json_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, Mapping):
        payload = payload.get("events") or []
    if not isinstance(payload, list):
        raise ValueError(f"{json_path} must contain a list of event records")
    return events_from_records(payload)


def load_events_csv(path: str | Path) -> List[BridgeEvent]:
    """Load a CSV export of the feed."""
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Event CSV not found at {csv_path}")
    header_df = pd.read_csv(csv_path, nrows=0)
    columns = {str(column).strip().lower(): column for column in header_df.columns}
    missing = sorted(REQUIRED_COLUMNS - set(columns))
    if missing:
        raise ValueError(f"{csv_path} is missing required columns: {', '.join(missing)}")
    usecols = [columns[name] for name in FEED_COLUMNS if name in columns]
    df = pd.read_csv(csv_path, usecols=usecols, dtype=str, keep_default_na=False)
    df.columns = [str(column).strip().lower() for column in df.columns]
    return events_from_records(df.to_dict(orient="records"))


def load_events(path: str | Path) -> List[BridgeEvent]:
    """Dispatch on file suffix (``.json`` or anything else as CSV)."""
    if Path(path).suffix.lower() == ".json":
        return load_events_json(path)
    return load_events_csv(path)


def events_to_dataframe(events: Iterable[BridgeEvent]) -> pd.DataFrame:
    rows = [
        {
            "entity_id": event.entity_id,
            "entity_name": event.entity_name,
            "entity_type": event.entity_type,
            "open_time": event.open_time,
            "close_time": event.close_time,
            "minutes_open": event.minutes_open,
            "latitude": event.latitude,
            "longitude": event.longitude,
        }
        for event in events
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "entity_id",
            "entity_name",
            "entity_type",
            "open_time",
            "close_time",
            "minutes_open",
            "latitude",
            "longitude",
        ],
    )


def _clean_text(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _parse_int(value: object) -> Optional[int]:
    text = _clean_text(value)
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def _parse_float(value: object) -> Optional[float]:
    text = _clean_text(value)
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None
