"""Storage collaborator contract used by :class:`~taskweave.graph.store.GraphStore`."""
from __future__ import annotations

from typing import ContextManager, Iterable, Protocol

from taskweave.graph.model import Dependency, Relationship, Task


class TaskRepository(Protocol):
    """Persistence backend for tasks, parent/child relationships and dependencies.

    The store validates every change against its in-memory graph before
    calling the repository, so implementations only need to persist rows.
    Calls issued inside :meth:`transaction` must commit or roll back together.
    """

    def load(self) -> tuple[list[Task], list[Relationship], list[Dependency]]:
        """Return every stored task, relationship and dependency."""

    def transaction(self) -> ContextManager[None]:
        """Group the calls made inside the block into one atomic unit."""

    def insert_task(self, task: Task) -> int:
        """Persist ``task`` and return its identifier.

        A task whose ``id`` is ``0`` or negative asks the repository to assign
        a fresh identifier; otherwise the given identifier is kept (restore).
        """

    def update_task(self, task: Task) -> None:
        """Overwrite the stored row for ``task.id``."""

    def delete_tasks(self, task_ids: Iterable[int]) -> None:
        """Delete tasks; incident relationships and dependencies go with them."""

    def insert_relationships(self, relationships: Iterable[Relationship]) -> None:
        """Persist new relationships."""

    def delete_relationships(self, relationships: Iterable[Relationship]) -> None:
        """Remove relationships; missing rows are ignored."""

    def insert_dependencies(self, dependencies: Iterable[Dependency]) -> None:
        """Persist new dependencies."""

    def delete_dependencies(self, dependencies: Iterable[Dependency]) -> None:
        """Remove dependencies; missing rows are ignored."""

    def replace_all(
        self,
        tasks: Iterable[Task],
        relationships: Iterable[Relationship],
        dependencies: Iterable[Dependency] = (),
    ) -> None:
        """Replace the whole stored graph."""
