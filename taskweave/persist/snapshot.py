"""Graph snapshot management."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from taskweave.graph.model import GraphSnapshot


@dataclass
class SnapshotManager:
    """Maintain in-memory snapshots of the graph for quick rollback."""

    history: List[GraphSnapshot] = field(default_factory=list)
    limit: int = 20

    def snapshot(self, snapshot: GraphSnapshot) -> None:
        """Push ``snapshot`` onto the history, evicting the oldest past ``limit``."""

        self.history.append(snapshot)
        if self.limit > 0 and len(self.history) > self.limit:
            del self.history[: len(self.history) - self.limit]

    def rollback(self) -> GraphSnapshot:
        """Pop and return the most recent snapshot."""

        if not self.history:
            raise RuntimeError("No snapshots available")
        return self.history.pop()

    def __len__(self) -> int:
        return len(self.history)
