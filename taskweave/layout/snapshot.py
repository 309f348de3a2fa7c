"""Turn a :class:`~taskweave.graph.model.GraphSnapshot` into layout input."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import networkx as nx

from taskweave.graph.model import GraphSnapshot
from taskweave.graph.query import QueryService

from .model import LayoutEdge, LayoutNode


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class NodeSizing:
    """Node box dimensions; deeper nodes shrink down to 70% of the regular size."""

    root_width: float = 160.0
    root_height: float = 56.0
    regular_width: float = 120.0
    regular_height: float = 42.0
    h_padding: float = 12.0

    @classmethod
    def for_viewport(cls, viewport_width: float, *, reference_width: float = 800.0) -> "NodeSizing":
        """Scale every dimension to the viewport, between 70% and 100%."""

        scale = _clamp(viewport_width / reference_width, 0.7, 1.0)
        base = cls()
        return cls(
            root_width=base.root_width * scale,
            root_height=base.root_height * scale,
            regular_width=base.regular_width * scale,
            regular_height=base.regular_height * scale,
            h_padding=base.h_padding * scale,
        )

    @staticmethod
    def depth_scale(depth: int) -> float:
        """1.0 up to depth 1, then 7% smaller per level, never below 0.7."""

        if depth <= 1:
            return 1.0
        return _clamp(1.0 - (depth - 1) * 0.07, 0.7, 1.0)

    def size_for(self, *, is_root: bool, depth: int) -> tuple[float, float]:
        if is_root:
            width, height = self.root_width, self.root_height
        else:
            scale = self.depth_scale(depth)
            width, height = self.regular_width * scale, self.regular_height * scale
        return width + self.h_padding * 2, height


def viewport_aspect_ratio(width: float, height: float) -> float:
    """Aspect ratio used to seed root positions, clamped to ``[0.8, 2.0]``."""

    if height <= 0:
        return 2.0
    return _clamp(width / height, 0.8, 2.0)


@dataclass(frozen=True)
class LayoutInput:
    """Nodes and edges ready for :func:`~taskweave.layout.force.run_layout`."""

    nodes: dict = field(default_factory=dict)
    edges: tuple[LayoutEdge, ...] = ()
    unrelated_ids: tuple[int, ...] = ()


def build_layout_input(
    snapshot: GraphSnapshot,
    sizing: Optional[NodeSizing] = None,
    *,
    include_unrelated: bool = False,
) -> LayoutInput:
    """Compute roots, depths, clusters, affinity sets and box sizes.

    Completed tasks are left out. Tasks without any relationship are reported
    in ``unrelated_ids`` and only laid out when ``include_unrelated`` is set.
    """

    sizing = sizing or NodeSizing()
    active = [task for task in snapshot.tasks if not task.is_completed]
    graph = nx.DiGraph()
    graph.add_nodes_from(task.id for task in active)
    graph.add_edges_from(
        rel.as_tuple()
        for rel in snapshot.relationships
        if rel.parent_id in graph and rel.child_id in graph
    )

    connected = set(QueryService(graph).connected())
    unrelated = tuple(task.id for task in active if task.id not in connected)
    if not include_unrelated:
        graph = graph.subgraph(connected)

    hierarchy = QueryService(graph).hierarchy()
    nodes: dict[int, LayoutNode] = {}
    for task in active:
        info = hierarchy.get(task.id)
        if info is None:
            continue
        is_root = graph.in_degree(task.id) == 0
        width, height = sizing.size_for(is_root=is_root, depth=info.depth)
        nodes[task.id] = LayoutNode(
            id=task.id,
            is_root=is_root,
            width=width,
            height=height,
            depth=info.depth,
            cluster=info.cluster,
            affinity=info.affinity,
        )
    edges = tuple(LayoutEdge(source_id=parent, dest_id=child) for parent, child in sorted(graph.edges))
    return LayoutInput(nodes=nodes, edges=edges, unrelated_ids=unrelated)


__all__ = ["LayoutInput", "NodeSizing", "build_layout_input", "viewport_aspect_ratio"]
