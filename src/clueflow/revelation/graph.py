"""Clue relation graph wrapper around NetworkX."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List

import networkx as nx

from clueflow.domain.enums import ClueType
from clueflow.domain.models import Clue


@dataclass
class ClueGraph:
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    clues: Dict[str, Clue] = field(default_factory=dict)

    @classmethod
    def from_clues(cls, clues: Iterable[Clue]) -> "ClueGraph":
        built = cls()
        for clue in clues:
            built.add_clue(clue)
        for clue in built.clues.values():
            for related_id in clue.related_clues:
                if related_id in built.clues and related_id != clue.id:
                    built.graph.add_edge(clue.id, related_id, edge_type="related")
        return built

    def add_clue(self, clue: Clue) -> None:
        self.clues[clue.id] = clue
        self.graph.add_node(clue.id, clue_type=clue.clue_type, state=clue.state)

    def chain_targets(
        self,
        source_id: str,
        depth: int,
        is_pair: Callable[[ClueType, ClueType], bool],
    ) -> List[str]:
        """Pending clues reachable from the source through complementary-type hops.

        Each hop must pair with the clue it was reached from. Cycles are cut by
        the visited set, and traversal stops after `depth` hops.
        """
        if source_id not in self.graph:
            return []
        found: List[str] = []
        visited = {source_id}
        queue = deque([(source_id, 0)])
        while queue:
            current_id, hops = queue.popleft()
            if hops >= depth:
                continue
            current = self.clues[current_id]
            for neighbor_id in sorted(self.graph.successors(current_id)):
                if neighbor_id in visited:
                    continue
                neighbor = self.clues[neighbor_id]
                if not is_pair(current.family, neighbor.family):
                    continue
                visited.add(neighbor_id)
                if neighbor.is_pending:
                    found.append(neighbor_id)
                queue.append((neighbor_id, hops + 1))
        return found
