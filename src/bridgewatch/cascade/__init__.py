"""Cascade detection package exports."""

from .cascade_detector import (
    CascadeEdge,
    CascadePairStats,
    cascade_pair_stats,
    classify_cascade_type,
    detect_cascade_edges,
    edges_to_dataframe,
)
from .graph import CascadeGraph
from .insights import CascadeAlert, cascade_alerts, generate_cascade_insights

__all__ = [
    "CascadeAlert",
    "CascadeEdge",
    "CascadeGraph",
    "CascadePairStats",
    "cascade_alerts",
    "cascade_pair_stats",
    "classify_cascade_type",
    "detect_cascade_edges",
    "edges_to_dataframe",
    "generate_cascade_insights",
]
