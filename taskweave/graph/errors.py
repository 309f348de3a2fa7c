"""Error taxonomy for relationship mutations on the task graph."""
from __future__ import annotations

from enum import Enum
from typing import Hashable


class GraphError(RuntimeError):
    """Base class for task graph failures."""


class UnknownNode(GraphError, KeyError):
    """Raised when an operation references a task id that does not exist."""

    def __init__(self, task_id: Hashable) -> None:
        self.task_id = task_id
        super().__init__(f"Unknown task: {task_id!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return self.args[0]


class RelationshipError(GraphError):
    """Recoverable rejection of a relationship or dependency edge."""

    def __init__(self, parent_id: Hashable, child_id: Hashable, message: str) -> None:
        self.parent_id = parent_id
        self.child_id = child_id
        super().__init__(message)


class InvalidEdge(RelationshipError):
    """Raised for self-loop attempts (a task as its own parent or dependency)."""

    def __init__(self, parent_id: Hashable, child_id: Hashable) -> None:
        super().__init__(parent_id, child_id, f"Task {parent_id!r} cannot be linked to itself")


class DuplicateEdge(RelationshipError):
    """Raised when the relationship or dependency already exists."""

    def __init__(self, parent_id: Hashable, child_id: Hashable) -> None:
        super().__init__(
            parent_id, child_id, f"Edge {parent_id!r} -> {child_id!r} already exists"
        )


class CycleRejected(RelationshipError):
    """Raised when inserting the edge would close a directed cycle."""

    def __init__(self, parent_id: Hashable, child_id: Hashable) -> None:
        super().__init__(
            parent_id,
            child_id,
            f"Cannot add {parent_id!r} -> {child_id!r}: {parent_id!r} is reachable from {child_id!r}",
        )


class RepositoryError(RuntimeError):
    """Raised when the storage collaborator fails to persist a change."""


class LinkOutcome(str, Enum):
    """Result-style outcome for callers that prefer not to handle exceptions."""

    ADDED = "added"
    INVALID = "invalid"
    DUPLICATE = "duplicate"
    CYCLE = "cycle"

    @property
    def ok(self) -> bool:
        return self is LinkOutcome.ADDED

    @classmethod
    def from_error(cls, error: RelationshipError) -> "LinkOutcome":
        if isinstance(error, InvalidEdge):
            return cls.INVALID
        if isinstance(error, DuplicateEdge):
            return cls.DUPLICATE
        return cls.CYCLE


__all__ = [
    "CycleRejected",
    "DuplicateEdge",
    "GraphError",
    "InvalidEdge",
    "LinkOutcome",
    "RelationshipError",
    "RepositoryError",
    "UnknownNode",
]
