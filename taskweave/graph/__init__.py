"""Graph subpackage containing the task model, errors and the relationship store."""

from .errors import (
    CycleRejected,
    DuplicateEdge,
    GraphError,
    InvalidEdge,
    LinkOutcome,
    RelationshipError,
    RepositoryError,
    UnknownNode,
)
from .model import DeletedSubtree, DeletedTask, Dependency, GraphSnapshot, Relationship, Task
from .store import GraphStore

__all__ = [
    "CycleRejected",
    "DeletedSubtree",
    "DeletedTask",
    "Dependency",
    "DuplicateEdge",
    "GraphError",
    "GraphSnapshot",
    "GraphStore",
    "InvalidEdge",
    "LinkOutcome",
    "RelationshipError",
    "Relationship",
    "RepositoryError",
    "Task",
    "UnknownNode",
]
