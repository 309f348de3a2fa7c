"""Value types describing tasks, relationships and graph snapshots."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional

from .ids import now_ms


@dataclass(frozen=True)
class Task:
    """A task node; ``attributes`` pass through the graph untouched."""

    id: int
    name: str
    created_at: int = field(default_factory=now_ms)
    completed_at: Optional[int] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def with_updates(self, **changes: Any) -> "Task":
        """Return a copy of the task with ``changes`` applied."""

        return replace(self, **changes)

    def to_row(self) -> dict[str, Any]:
        """Serialise the task to a flat mapping suitable for storage."""

        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "attributes": json.dumps(dict(self.attributes)) if self.attributes else None,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Task":
        raw_attributes = row.get("attributes")
        if isinstance(raw_attributes, str):
            attributes = json.loads(raw_attributes)
        else:
            attributes = dict(raw_attributes or {})
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            created_at=int(row["created_at"]),
            completed_at=None if row.get("completed_at") is None else int(row["completed_at"]),
            attributes=attributes,
        )


@dataclass(frozen=True, order=True)
class Relationship:
    """Directed ``parent -> child`` edge."""

    parent_id: int
    child_id: int

    def as_tuple(self) -> tuple[int, int]:
        return (self.parent_id, self.child_id)


@dataclass(frozen=True, order=True)
class Dependency:
    """``task_id`` cannot start before ``depends_on_id`` is completed."""

    task_id: int
    depends_on_id: int

    def as_tuple(self) -> tuple[int, int]:
        return (self.task_id, self.depends_on_id)


@dataclass(frozen=True)
class DeletedTask:
    """Everything needed to undo a single task deletion."""

    task: Task
    parent_ids: tuple[int, ...] = ()
    child_ids: tuple[int, ...] = ()
    added_links: tuple[Relationship, ...] = ()
    depends_on_ids: tuple[int, ...] = ()
    depended_by_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class DeletedSubtree:
    """Tasks, relationships and dependencies removed by a subtree deletion."""

    tasks: tuple[Task, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    dependencies: tuple[Dependency, ...] = ()

    @property
    def task_ids(self) -> tuple[int, ...]:
        return tuple(task.id for task in self.tasks)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable copy of the graph used for layout, export and rollback."""

    tasks: tuple[Task, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    dependencies: tuple[Dependency, ...] = ()

    @classmethod
    def build(
        cls,
        tasks: Iterable[Task],
        relationships: Iterable[Relationship],
        dependencies: Iterable[Dependency] = (),
    ) -> "GraphSnapshot":
        return cls(
            tasks=tuple(sorted(tasks, key=lambda task: task.id)),
            relationships=tuple(sorted(relationships)),
            dependencies=tuple(sorted(dependencies)),
        )

    def task_map(self) -> dict[int, Task]:
        return {task.id: task for task in self.tasks}


__all__ = ["DeletedSubtree", "DeletedTask", "Dependency", "GraphSnapshot", "Relationship", "Task"]
