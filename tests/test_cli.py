from __future__ import annotations

import csv
from datetime import datetime, timedelta

import pandas as pd
import pytest

from bridgewatch.cli import main as analyze_main


def _write_feed_csv(path) -> None:
    base = datetime(2025, 6, 2, 7, 0)
    rows = []
    for day in range(5):
        start = base + timedelta(days=day)
        for entity_id, name, offset in ((1, "Fremont Bridge", 0), (2, "Ballard Bridge", 5)):
            opened = start + timedelta(minutes=offset)
            closed = opened + timedelta(minutes=7)
            rows.append(
                {
                    "entityid": entity_id,
                    "entityname": name,
                    "entitytype": "Bridge",
                    "opendatetime": opened.isoformat(),
                    "closedatetime": closed.isoformat(),
                    "minutesopen": 7,
                    "latitude": 47.65,
                    "longitude": -122.35,
                }
            )
    rows.append({**rows[0], "opendatetime": "garbage"})
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


def test_cli_writes_tables(tmp_path):
    events_path = tmp_path / "events.csv"
    _write_feed_csv(events_path)
    out_dir = tmp_path / "out"
    config_path = tmp_path / "engine.yaml"
    config_path.write_text("timezone: UTC\ncascade_min_strength: 0.5\n", encoding="utf-8")

    analyze_main(
        [
            "--events",
            str(events_path),
            "--config",
            str(config_path),
            "--output-dir",
            str(out_dir),
            "--log-level",
            "WARNING",
        ]
    )

    cells = pd.read_csv(out_dir / "analytics_cells.csv")
    assert set(cells["entity_id"]) == {1, 2}
    assert cells["opening_count"].sum() == 10

    streaks = pd.read_csv(out_dir / "streaks.csv")
    assert streaks["bridge_id"].tolist() == [1, 2]

    edges = pd.read_csv(out_dir / "cascade_edges.csv")
    assert edges[["trigger_bridge_id", "target_bridge_id"]].values.tolist() == [[1, 2]]
    assert edges.loc[0, "cascade_strength"] == pytest.approx(1.0)
    assert edges.loc[0, "delay_minutes"] == pytest.approx(5.0)


def test_cli_accepts_explicit_now(tmp_path):
    events_path = tmp_path / "events.csv"
    _write_feed_csv(events_path)
    out_dir = tmp_path / "out"
    analyze_main(
        [
            "--events",
            str(events_path),
            "--now",
            "2025-06-10T07:00:00",
            "--output-dir",
            str(out_dir),
        ]
    )
    streaks = pd.read_csv(out_dir / "streaks.csv")
    assert (streaks["current_streak_hours"] > 24).all()


def test_cli_rejects_bad_inputs(tmp_path):
    bad_csv = tmp_path / "bad.csv"
    bad_csv.write_text("entityid,entityname\n1,Fremont\n", encoding="utf-8")
    with pytest.raises(SystemExit, match="missing required columns"):
        analyze_main(["--events", str(bad_csv), "--output-dir", str(tmp_path / "out")])

    events_path = tmp_path / "events.csv"
    _write_feed_csv(events_path)
    with pytest.raises(SystemExit, match="--now"):
        analyze_main(["--events", str(events_path), "--now", "tomorrow"])
