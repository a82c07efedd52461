"""Adjacency view over detected cascade edges."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .cascade_detector import EDGE_COLUMNS, CascadeEdge


@dataclass
class CascadeGraph:
    """Query cascade edges by trigger, by target and by aggregate strength."""

    edges: Dict[Tuple[int, int], CascadeEdge]
    incoming_edges: Dict[int, List[CascadeEdge]]
    outgoing_edges: Dict[int, List[CascadeEdge]]

    @classmethod
    def from_edges(cls, edges: Sequence[CascadeEdge]) -> "CascadeGraph":
        by_pair: Dict[Tuple[int, int], CascadeEdge] = {}
        incoming: Dict[int, List[CascadeEdge]] = {}
        outgoing: Dict[int, List[CascadeEdge]] = {}
        for edge in sorted(edges, key=lambda e: (e.trigger_bridge_id, e.target_bridge_id)):
            pair = (edge.trigger_bridge_id, edge.target_bridge_id)
            if pair in by_pair:
                raise ValueError(f"Duplicate cascade edge {pair[0]} -> {pair[1]}")
            by_pair[pair] = edge
            incoming.setdefault(edge.target_bridge_id, []).append(edge)
            outgoing.setdefault(edge.trigger_bridge_id, []).append(edge)
        return cls(edges=by_pair, incoming_edges=incoming, outgoing_edges=outgoing)

    @classmethod
    def from_csv(cls, path: str) -> "CascadeGraph":
        """Load an edge table written by ``bridgewatch-analyze``."""
        df = pd.read_csv(path)
        missing = [col for col in EDGE_COLUMNS[:8] if col not in df.columns]
        if missing:
            raise ValueError(f"Cascade edge CSV is missing columns: {missing}")
        edges = [
            CascadeEdge(
                trigger_bridge_id=int(row.trigger_bridge_id),
                trigger_bridge_name=str(row.trigger_bridge_name),
                target_bridge_id=int(row.target_bridge_id),
                target_bridge_name=str(row.target_bridge_name),
                cascade_strength=float(row.cascade_strength),
                delay_minutes=float(row.delay_minutes),
                matches=int(row.matches),
                opportunities=int(row.opportunities),
            )
            for row in df.itertuples(index=False)
        ]
        return cls.from_edges(edges)

    def __len__(self) -> int:
        return len(self.edges)

    # ---------------------------- adjacency -----
    def get_incoming(self, bridge_id: int) -> List[CascadeEdge]:
        return self.incoming_edges.get(int(bridge_id), [])

    def get_outgoing(self, bridge_id: int) -> List[CascadeEdge]:
        return self.outgoing_edges.get(int(bridge_id), [])

    def edge(self, trigger_id: int, target_id: int) -> Optional[CascadeEdge]:
        return self.edges.get((int(trigger_id), int(target_id)))

    @property
    def bridge_ids(self) -> List[int]:
        return sorted(set(self.incoming_edges) | set(self.outgoing_edges))

    # ---------------------------- aggregates -----
    def _max_total(self, adjacency: Dict[int, List[CascadeEdge]]) -> float:
        totals = [sum(edge.cascade_strength for edge in group) for group in adjacency.values()]
        return max(totals, default=0.0)

    def influence(self, bridge_id: int) -> float:
        """Outgoing strength relative to the most influential bridge, in [0, 1]."""
        peak = self._max_total(self.outgoing_edges)
        if peak <= 0.0:
            return 0.0
        return sum(edge.cascade_strength for edge in self.get_outgoing(bridge_id)) / peak

    def susceptibility(self, bridge_id: int) -> float:
        """Incoming strength relative to the most susceptible bridge, in [0, 1]."""
        peak = self._max_total(self.incoming_edges)
        if peak <= 0.0:
            return 0.0
        return sum(edge.cascade_strength for edge in self.get_incoming(bridge_id)) / peak

    def primary_target(self, bridge_id: int) -> Optional[int]:
        outgoing = self.get_outgoing(bridge_id)
        if not outgoing:
            return None
        best = min(outgoing, key=lambda e: (-e.cascade_strength, e.target_bridge_id))
        return best.target_bridge_id
