"""Run the drawbridge analytics engines over an event snapshot and write CSV tables."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from bridgewatch.config import EngineConfig
from bridgewatch.events.data_sources import load_events, parse_timestamp
from bridgewatch.service import AnalyticsRunResult, BridgeAnalyticsService

logger = logging.getLogger(__name__)

CELLS_FILENAME = "analytics_cells.csv"
STREAKS_FILENAME = "streaks.csv"
EDGES_FILENAME = "cascade_edges.csv"
TOP_EDGES = 10


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--events",
        required=True,
        help="Event snapshot in the drawbridge feed format (.csv, or .json record list).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional engine configuration YAML (timezone, lookbacks, cascade window).",
    )
    parser.add_argument(
        "--now",
        default=None,
        help="Reference time (ISO 8601). Defaults to the latest open time in the snapshot.",
    )
    parser.add_argument(
        "--output-dir",
        default="output/bridgewatch",
        help="Directory that receives the CSV tables.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    config = EngineConfig.from_yaml(args.config) if args.config else EngineConfig()
    now = None
    if args.now:
        now = parse_timestamp(args.now)
        if now is None:
            raise SystemExit(f"Could not parse --now value {args.now!r}")

    console = Console(stderr=True)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(bar_width=None),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=not console.is_terminal,
    )

    with progress:
        task_id = progress.add_task("Bridge analytics", total=3)
        try:
            events = load_events(args.events)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
        progress.advance(task_id)

        service = BridgeAnalyticsService(config)
        try:
            result = service.run(events, now=now)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
        progress.advance(task_id)

        output_dir = Path(args.output_dir)
        _write_table(output_dir / CELLS_FILENAME, result.cell_table)
        _write_table(output_dir / STREAKS_FILENAME, result.streak_table)
        _write_table(output_dir / EDGES_FILENAME, result.edge_table)
        progress.advance(task_id)

    logger.info(
        "Wrote %d cells, %d streak records and %d cascade edges to %s",
        len(result.cell_table),
        len(result.streak_table),
        len(result.edge_table),
        output_dir,
    )
    console.print(summary_table(result))


def _write_table(path: Path, dataframe: pd.DataFrame) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    dataframe.to_csv(path, index=False)


def summary_table(result: AnalyticsRunResult, *, top_edges: int = TOP_EDGES) -> Table:
    table = Table(title=f"Bridge analytics as of {result.now.isoformat()}")
    table.add_column("Item")
    table.add_column("Detail")
    table.add_column("Value", justify="right")

    champion = result.champion
    if champion is None:
        table.add_row("Weekly champion", "no bridges in snapshot", "-")
    else:
        table.add_row(
            "Weekly champion",
            f"{champion.bridge_name} ({champion.historical_context})",
            f"{champion.streak_hours:.1f}h",
        )

    strongest: Sequence = sorted(
        result.edges,
        key=lambda edge: (-edge.cascade_strength, edge.trigger_bridge_id, edge.target_bridge_id),
    )[:top_edges]
    for edge in strongest:
        table.add_row(
            "Cascade",
            f"{edge.trigger_bridge_name} -> {edge.target_bridge_name} "
            f"({edge.cascade_type}, {edge.delay_minutes:.1f} min)",
            f"{edge.cascade_strength:.2f}",
        )
    return table


if __name__ == "__main__":
    main()
