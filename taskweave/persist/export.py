"""Graph export utilities."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

import networkx as nx
from networkx.readwrite import json_graph

from taskweave.graph.model import GraphSnapshot


@dataclass
class GraphExporter:
    """Serialize a graph snapshot to a portable representation."""

    snapshot: GraphSnapshot

    def to_networkx(self) -> nx.DiGraph:
        """Return a plain ``DiGraph`` with scalar node attributes only."""

        graph = nx.DiGraph()
        for task in self.snapshot.tasks:
            attrs = {"name": task.name, "created_at": task.created_at}
            if task.completed_at is not None:
                attrs["completed_at"] = task.completed_at
            graph.add_node(task.id, **attrs)
        graph.add_edges_from(rel.as_tuple() for rel in self.snapshot.relationships)
        for dep in self.snapshot.dependencies:
            graph.nodes[dep.task_id]["depends_on"] = dep.depends_on_id
        return graph

    def export(self, *, format: Literal["graphml", "json"] = "json") -> str:
        """Export the graph to the requested ``format``."""

        if format == "graphml":
            return "\n".join(nx.generate_graphml(self.to_networkx()))
        if format == "json":
            data = json_graph.node_link_data(self.to_networkx(), edges="edges")
            return json.dumps(data, sort_keys=True)
        raise ValueError(f"Unsupported export format: {format}")
