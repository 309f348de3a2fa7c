"""Read-side helpers for the task graph."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional

import networkx as nx


def reachable(graph: nx.DiGraph, source: Hashable, target: Hashable) -> bool:
    """Return ``True`` if ``target`` can be reached from ``source``.

    Breadth-first over successor edges, stopping as soon as
    ``target`` is dequeued. ``source == target`` is the trivial path.
    """

    if source == target:
        return True
    if source not in graph:
        return False
    visited = {source}
    frontier = deque([source])
    while frontier:
        current = frontier.popleft()
        for child in graph.successors(current):
            if child == target:
                return True
            if child in visited:
                continue
            visited.add(child)
            frontier.append(child)
    return False


@dataclass(frozen=True)
class HierarchyInfo:
    """Position of a node relative to the roots of its graph."""

    depth: int
    cluster: Optional[int]
    affinity: frozenset[int]


@dataclass
class QueryService:
    """Structured access patterns on top of a ``networkx`` task graph."""

    graph: nx.DiGraph

    def roots(self) -> list[int]:
        """Return nodes without incoming edges, in id order."""

        return sorted(node for node, degree in self.graph.in_degree() if degree == 0)

    def leaves(self) -> list[int]:
        """Return nodes without outgoing edges, in id order."""

        return sorted(node for node, degree in self.graph.out_degree() if degree == 0)

    def connected(self) -> list[int]:
        """Return nodes that take part in at least one relationship."""

        return sorted(node for node, degree in self.graph.degree() if degree > 0)

    def descendants(self, node_id: int, *, hop: Optional[int] = None) -> Iterable[int]:
        """Yield descendants of ``node_id`` breadth-first, up to ``hop`` levels."""

        if node_id not in self.graph:
            return
        visited = {node_id}
        frontier = [node_id]
        level = 0
        while frontier and (hop is None or level < hop):
            next_frontier = []
            for current in frontier:
                for child in sorted(self.graph.successors(current)):
                    if child in visited:
                        continue
                    visited.add(child)
                    next_frontier.append(child)
                    yield child
            frontier = next_frontier
            level += 1

    def hierarchy(self) -> dict[int, HierarchyInfo]:
        """Compute depth, primary cluster and affinity set for every node.

        Roots are walked breadth-first in id order; a node belongs to the
        cluster of the root that reaches it first and sits at that distance.
        The affinity set holds every root among the node's ancestors.
        """

        roots = self.roots()
        root_set = set(roots)
        depths: dict[int, int] = {}
        clusters: dict[int, int] = {}
        queue = deque()
        for root in roots:
            depths[root] = 0
            clusters[root] = root
            queue.append(root)
        while queue:
            current = queue.popleft()
            for child in sorted(self.graph.successors(current)):
                if child in depths:
                    continue
                depths[child] = depths[current] + 1
                clusters[child] = clusters[current]
                queue.append(child)

        max_depth = max(depths.values(), default=0)
        info: dict[int, HierarchyInfo] = {}
        for node in self.graph.nodes:
            if node in root_set:
                affinity = frozenset({node})
            else:
                affinity = frozenset(nx.ancestors(self.graph, node) & root_set)
            info[node] = HierarchyInfo(
                depth=depths.get(node, max_depth),
                cluster=clusters.get(node),
                affinity=affinity,
            )
        return info


__all__ = ["HierarchyInfo", "QueryService", "reachable"]
