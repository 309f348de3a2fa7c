"""NetworkX based store for the task hierarchy.

:class:`GraphStore` is the only writer of ``parent -> child`` relationships and
therefore the one place that keeps the graph acyclic. Every operation runs
under a store-scoped re-entrant lock: the reachability check and the edge
insertion of :meth:`GraphStore.add_relationship` form one atomic unit, and
readers never observe a half-applied change.

When a :class:`~taskweave.persist.base.TaskRepository` is attached, each
mutation is written to the repository inside a repository transaction before
the in-memory graph is touched, so a failed write leaves both sides unchanged.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Optional, Sequence

import networkx as nx

from .errors import (
    CycleRejected,
    DuplicateEdge,
    GraphError,
    InvalidEdge,
    LinkOutcome,
    RelationshipError,
    UnknownNode,
)
from .ids import now_ms
from .model import Dependency, DeletedSubtree, DeletedTask, GraphSnapshot, Relationship, Task
from .query import reachable

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from taskweave.persist.base import TaskRepository

LOGGER = logging.getLogger(__name__)


def _creation_order(task: Task) -> tuple[int, int]:
    return (task.created_at, task.id)


@dataclass
class GraphStore:
    """Task graph held in a :class:`networkx.DiGraph`.

    Nodes are task ids carrying the :class:`Task` under the ``task`` attribute;
    edges point from parent to child. Dependencies live in the separate
    ``dependencies`` graph with edges pointing from a task to the task it
    waits on; a task has at most one outgoing dependency edge.
    """

    repository: Optional[TaskRepository] = None
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    dependencies: nx.DiGraph = field(default_factory=nx.DiGraph)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)
    _next_id: int = field(default=1, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.repository is not None and self.graph.number_of_nodes() == 0:
            tasks, relationships, dependencies = self.repository.load()
            for task in tasks:
                self.graph.add_node(task.id, task=task)
            self.graph.add_edges_from(rel.as_tuple() for rel in relationships)
            self.dependencies.add_edges_from(dep.as_tuple() for dep in dependencies)
            LOGGER.debug(
                "Loaded %d tasks, %d relationships and %d dependencies from repository",
                len(tasks),
                len(relationships),
                len(dependencies),
            )
        if not nx.is_directed_acyclic_graph(self.graph):
            raise ValueError("GraphStore requires an acyclic graph")
        if not nx.is_directed_acyclic_graph(self.dependencies):
            raise ValueError("GraphStore requires acyclic dependencies")
        self._next_id = max(self.graph.nodes, default=0) + 1

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self.graph

    def __len__(self) -> int:
        with self._lock:
            return self.graph.number_of_nodes()

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def create_task(
        self,
        name: str,
        *,
        created_at: Optional[int] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        parent_ids: Sequence[int] = (),
    ) -> Task:
        """Insert a new task, optionally linked under ``parent_ids``."""

        draft = Task(
            id=0,
            name=name,
            created_at=now_ms() if created_at is None else created_at,
            attributes=dict(attributes or {}),
        )
        return self._create([draft], parent_ids)[0]

    def create_tasks(self, names: Iterable[str], *, parent_id: Optional[int] = None) -> list[Task]:
        """Insert several tasks as one unit, all under ``parent_id`` if given."""

        drafts = [Task(id=0, name=name) for name in names]
        return self._create(drafts, () if parent_id is None else (parent_id,))

    def get_task(self, task_id: int) -> Task:
        with self._lock:
            self._require(task_id)
            return self.graph.nodes[task_id]["task"]

    def rename_task(self, task_id: int, name: str) -> Task:
        return self._update(task_id, name=name)

    def complete_task(self, task_id: int, *, completed_at: Optional[int] = None) -> Task:
        """Mark a task as completed (archived); its relationships are kept."""

        return self._update(task_id, completed_at=now_ms() if completed_at is None else completed_at)

    def uncomplete_task(self, task_id: int) -> Task:
        return self._update(task_id, completed_at=None)

    def delete_task(self, task_id: int) -> DeletedTask:
        """Delete ``task_id`` and every incident relationship.

        Children that lose their last parent become roots.
        """

        with self._write():
            task = self.get_task(task_id)
            deleted = DeletedTask(
                task=task,
                parent_ids=tuple(self.get_parent_ids(task_id)),
                child_ids=tuple(self.get_child_ids(task_id)),
                **self._dependency_ids(task_id),
            )
            if self.repository is not None:
                self.repository.delete_tasks([task_id])
            self.graph.remove_node(task_id)
            self._drop_dependencies([task_id])
        LOGGER.debug(
            "Deleted task %s (parents=%s, children=%s)",
            task_id,
            list(deleted.parent_ids),
            list(deleted.child_ids),
        )
        return deleted

    def delete_task_and_reparent(self, task_id: int) -> DeletedTask:
        """Delete ``task_id`` and link each of its children to each of its parents."""

        with self._write():
            task = self.get_task(task_id)
            parent_ids = tuple(self.get_parent_ids(task_id))
            child_ids = tuple(self.get_child_ids(task_id))
            # Safe without a cycle check: a path child -> parent would already
            # have formed a cycle through the deleted task.
            added = tuple(
                Relationship(parent_id, child_id)
                for parent_id in parent_ids
                for child_id in child_ids
                if not self.graph.has_edge(parent_id, child_id)
            )
            if self.repository is not None:
                self.repository.delete_tasks([task_id])
            self._persist_links(added=added)
            dependency_ids = self._dependency_ids(task_id)
            self.graph.remove_node(task_id)
            self._drop_dependencies([task_id])
            self.graph.add_edges_from(rel.as_tuple() for rel in added)
        LOGGER.debug("Deleted task %s and reparented %d links", task_id, len(added))
        return DeletedTask(
            task=task,
            parent_ids=parent_ids,
            child_ids=child_ids,
            added_links=added,
            **dependency_ids,
        )

    def delete_subtree(self, task_id: int) -> DeletedSubtree:
        """Delete ``task_id`` together with every descendant."""

        with self._write():
            self._require(task_id)
            doomed = {task_id} | nx.descendants(self.graph, task_id)
            tasks = tuple(
                sorted((self.graph.nodes[node]["task"] for node in doomed), key=_creation_order)
            )
            relationships = tuple(
                sorted(
                    {Relationship(*edge) for edge in self.graph.in_edges(doomed)}
                    | {Relationship(*edge) for edge in self.graph.out_edges(doomed)}
                )
            )
            dependencies = self._incident_dependencies(doomed)
            if self.repository is not None:
                self.repository.delete_tasks(sorted(doomed))
            self.graph.remove_nodes_from(doomed)
            self._drop_dependencies(doomed)
        LOGGER.debug("Deleted subtree of %s (%d tasks)", task_id, len(tasks))
        return DeletedSubtree(tasks=tasks, relationships=relationships, dependencies=dependencies)

    def restore_task(self, deleted: DeletedTask) -> Task:
        """Undo :meth:`delete_task` or :meth:`delete_task_and_reparent`."""

        task_id = deleted.task.id
        links = [Relationship(parent_id, task_id) for parent_id in deleted.parent_ids]
        links += [Relationship(task_id, child_id) for child_id in deleted.child_ids]
        dependencies = [Dependency(task_id, target) for target in deleted.depends_on_ids]
        dependencies += [Dependency(dependent, task_id) for dependent in deleted.depended_by_ids]
        self._restore([deleted.task], links, removals=deleted.added_links, dependencies=dependencies)
        return deleted.task

    def restore_subtree(self, deleted: DeletedSubtree) -> list[Task]:
        """Undo :meth:`delete_subtree`."""

        self._restore(
            deleted.tasks,
            deleted.relationships,
            removals=(),
            dependencies=deleted.dependencies,
        )
        return list(deleted.tasks)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def add_relationship(self, parent_id: int, child_id: int) -> Relationship:
        """Insert ``parent_id -> child_id``.

        Raises :class:`InvalidEdge`, :class:`DuplicateEdge` or
        :class:`CycleRejected` for rejected links and :class:`UnknownNode`
        for ids that are not tasks. A rejected call changes nothing.
        """

        with self._write():
            self._validate_link(parent_id, child_id)
            relationship = Relationship(parent_id, child_id)
            self._persist_links(added=[relationship])
            self.graph.add_edge(parent_id, child_id)
        LOGGER.debug("Added relationship %s -> %s", parent_id, child_id)
        return relationship

    def try_add_relationship(self, parent_id: int, child_id: int) -> LinkOutcome:
        """Like :meth:`add_relationship` but reports rejections as a :class:`LinkOutcome`."""

        try:
            self.add_relationship(parent_id, child_id)
        except RelationshipError as exc:
            return LinkOutcome.from_error(exc)
        return LinkOutcome.ADDED

    def remove_relationship(self, parent_id: int, child_id: int) -> bool:
        """Remove ``parent_id -> child_id``; returns ``False`` if it did not exist."""

        with self._write():
            self._require(parent_id)
            self._require(child_id)
            if not self.graph.has_edge(parent_id, child_id):
                return False
            self._persist_links(removed=[Relationship(parent_id, child_id)])
            self.graph.remove_edge(parent_id, child_id)
        LOGGER.debug("Removed relationship %s -> %s", parent_id, child_id)
        return True

    def move_task(self, task_id: int, from_parent_id: int, to_parent_id: int) -> LinkOutcome:
        """Re-home ``task_id`` from one parent to another in a single step."""

        with self._write():
            self._require(from_parent_id)
            try:
                self._validate_link(to_parent_id, task_id)
            except RelationshipError as exc:
                return LinkOutcome.from_error(exc)
            added = Relationship(to_parent_id, task_id)
            removed = Relationship(from_parent_id, task_id)
            has_old = self.graph.has_edge(*removed.as_tuple())
            self._persist_links(added=[added], removed=[removed] if has_old else [])
            self.graph.add_edge(to_parent_id, task_id)
            if has_old:
                self.graph.remove_edge(from_parent_id, task_id)
        LOGGER.debug("Moved task %s from %s to %s", task_id, from_parent_id, to_parent_id)
        return LinkOutcome.ADDED

    def has_path(self, from_id: int, to_id: int) -> bool:
        """Return ``True`` if ``to_id`` is reachable from ``from_id`` (or equal)."""

        with self._lock:
            self._require(from_id)
            self._require(to_id)
            return reachable(self.graph, from_id, to_id)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: int, depends_on_id: int) -> Dependency:
        """Make ``task_id`` wait on ``depends_on_id``.

        A task has at most one dependency, so an existing one is replaced.
        Raises :class:`InvalidEdge` for a self-dependency and
        :class:`CycleRejected` when ``depends_on_id`` already waits on
        ``task_id``, directly or transitively.
        """

        dependency = Dependency(task_id, depends_on_id)
        with self._write():
            try:
                if task_id == depends_on_id:
                    raise InvalidEdge(task_id, depends_on_id)
                self._require(task_id)
                self._require(depends_on_id)
                if self.dependencies.has_edge(task_id, depends_on_id):
                    return dependency
                if reachable(self.dependencies, depends_on_id, task_id):
                    raise CycleRejected(task_id, depends_on_id)
            except RelationshipError as exc:
                LOGGER.info(
                    "Rejected dependency %s -> %s: %s", task_id, depends_on_id, type(exc).__name__
                )
                raise
            replaced = self._outgoing_dependencies(task_id)
            if self.repository is not None:
                self.repository.delete_dependencies(replaced)
                self.repository.insert_dependencies([dependency])
            self._drop_dependency_edges(dep.as_tuple() for dep in replaced)
            self.dependencies.add_edge(task_id, depends_on_id)
        LOGGER.debug("Task %s now depends on %s", task_id, depends_on_id)
        return dependency

    def try_add_dependency(self, task_id: int, depends_on_id: int) -> LinkOutcome:
        try:
            self.add_dependency(task_id, depends_on_id)
        except RelationshipError as exc:
            return LinkOutcome.from_error(exc)
        return LinkOutcome.ADDED

    def remove_dependency(self, task_id: int, depends_on_id: int) -> bool:
        """Remove the dependency; returns ``False`` if it did not exist."""

        with self._write():
            self._require(task_id)
            self._require(depends_on_id)
            if not self.dependencies.has_edge(task_id, depends_on_id):
                return False
            if self.repository is not None:
                self.repository.delete_dependencies([Dependency(task_id, depends_on_id)])
            self._drop_dependency_edges([(task_id, depends_on_id)])
        LOGGER.debug("Removed dependency %s -> %s", task_id, depends_on_id)
        return True

    def get_dependencies(self, task_id: int) -> list[Task]:
        """Return the tasks ``task_id`` waits on."""

        with self._lock:
            self._require(task_id)
            return self._tasks(self._dependency_targets(task_id), False)

    def get_dependents(self, task_id: int) -> list[Task]:
        with self._lock:
            self._require(task_id)
            dependents = self.dependencies.predecessors(task_id) if task_id in self.dependencies else ()
            return self._tasks(dependents, False)

    def get_all_dependencies(self) -> list[Dependency]:
        with self._lock:
            return sorted(Dependency(*edge) for edge in self.dependencies.edges)

    def get_blocked_child_ids(self, child_ids: Iterable[int]) -> set[int]:
        """Return the ids in ``child_ids`` that wait on a task not yet completed."""

        blocked = set()
        with self._lock:
            for child_id in child_ids:
                self._require(child_id)
                for target in self._dependency_targets(child_id):
                    if not self.graph.nodes[target]["task"].is_completed:
                        blocked.add(child_id)
        return blocked

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_root_tasks(self, *, active_only: bool = False) -> list[Task]:
        with self._lock:
            roots = (node for node, degree in self.graph.in_degree() if degree == 0)
            return self._tasks(roots, active_only)

    def get_leaf_tasks(self, *, active_only: bool = False) -> list[Task]:
        with self._lock:
            leaves = (node for node, degree in self.graph.out_degree() if degree == 0)
            return self._tasks(leaves, active_only)

    def get_children(self, parent_id: int, *, active_only: bool = False) -> list[Task]:
        with self._lock:
            self._require(parent_id)
            return self._tasks(self.graph.successors(parent_id), active_only)

    def get_parents(self, child_id: int, *, active_only: bool = False) -> list[Task]:
        with self._lock:
            self._require(child_id)
            return self._tasks(self.graph.predecessors(child_id), active_only)

    def get_parent_ids(self, child_id: int) -> list[int]:
        with self._lock:
            self._require(child_id)
            return sorted(self.graph.predecessors(child_id))

    def get_child_ids(self, parent_id: int) -> list[int]:
        with self._lock:
            self._require(parent_id)
            return sorted(self.graph.successors(parent_id))

    def has_children(self, task_id: int) -> bool:
        with self._lock:
            self._require(task_id)
            return self.graph.out_degree(task_id) > 0

    def get_all_tasks(self, *, active_only: bool = False) -> list[Task]:
        with self._lock:
            return self._tasks(self.graph.nodes, active_only)

    def get_all_relationships(self, *, active_only: bool = False) -> list[Relationship]:
        """Return every relationship; ``active_only`` drops edges touching completed tasks."""

        with self._lock:
            nodes = self.graph.nodes
            return sorted(
                Relationship(parent_id, child_id)
                for parent_id, child_id in self.graph.edges
                if not active_only
                or not (nodes[parent_id]["task"].is_completed or nodes[child_id]["task"].is_completed)
            )

    def get_parent_names_map(self, *, active_only: bool = False) -> dict[int, list[str]]:
        """Map each child id to its parents' names, sorted, for disambiguation."""

        result: dict[int, list[str]] = {}
        with self._lock:
            for parent_id, child_id in self.graph.edges:
                parent = self.graph.nodes[parent_id]["task"]
                if active_only and parent.is_completed:
                    continue
                result.setdefault(child_id, []).append(parent.name)
        for names in result.values():
            names.sort()
        return result

    def get_parent_names_for(self, task_ids: Iterable[int]) -> dict[int, list[str]]:
        """Map each of ``task_ids`` that has parents to their sorted names.

        Completed parents are included, unlike the ``active_only`` view of
        :meth:`get_parent_names_map`.
        """

        result: dict[int, list[str]] = {}
        with self._lock:
            for task_id in task_ids:
                self._require(task_id)
                names = sorted(
                    self.graph.nodes[parent_id]["task"].name
                    for parent_id in self.graph.predecessors(task_id)
                )
                if names:
                    result[task_id] = names
        return result

    def get_completed_tasks(self) -> list[Task]:
        """Return completed tasks, most recently completed first."""

        with self._lock:
            completed = [
                data["task"] for _, data in self.graph.nodes(data=True) if data["task"].is_completed
            ]
        return sorted(completed, key=lambda task: (-task.completed_at, task.id))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        """Return an immutable copy of the current graph."""

        with self._lock:
            return GraphSnapshot.build(
                (data["task"] for _, data in self.graph.nodes(data=True)),
                (Relationship(*edge) for edge in self.graph.edges),
                (Dependency(*edge) for edge in self.dependencies.edges),
            )

    def load_snapshot(self, snapshot: GraphSnapshot) -> None:
        """Replace the whole graph with ``snapshot`` after validating it.

        Repeated relationships or dependencies raise :class:`DuplicateEdge`,
        self-links raise :class:`InvalidEdge` and cycles in either graph raise
        :class:`CycleRejected`. A rejected snapshot changes nothing.
        """

        candidate = nx.DiGraph()
        for task in snapshot.tasks:
            if task.id in candidate:
                raise GraphError(f"Task {task.id} appears more than once")
            candidate.add_node(task.id, task=task)
        for rel in snapshot.relationships:
            self._check_snapshot_edge(candidate, *rel.as_tuple())
            candidate.add_edge(*rel.as_tuple())
        self._ensure_acyclic(candidate)

        dependencies = nx.DiGraph()
        for dep in snapshot.dependencies:
            self._check_snapshot_edge(candidate, *dep.as_tuple(), existing=dependencies)
            if dep.task_id in dependencies and dependencies.out_degree(dep.task_id):
                raise GraphError(f"Task {dep.task_id} has more than one dependency")
            dependencies.add_edge(*dep.as_tuple())
        self._ensure_acyclic(dependencies)

        with self._write():
            if self.repository is not None:
                self.repository.replace_all(
                    snapshot.tasks, snapshot.relationships, snapshot.dependencies
                )
            self.graph.clear()
            self.graph.update(candidate)
            self.dependencies.clear()
            self.dependencies.update(dependencies)
            self._next_id = max(self._next_id, max(self.graph.nodes, default=0) + 1)
        LOGGER.debug("Loaded snapshot with %d tasks", len(snapshot.tasks))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _write(self) -> Iterator[None]:
        with self._lock:
            if self.repository is None:
                yield
            else:
                with self.repository.transaction():
                    yield

    def _require(self, task_id: int) -> None:
        if task_id not in self.graph:
            raise UnknownNode(task_id)

    def _validate_link(self, parent_id: int, child_id: int) -> None:
        try:
            if parent_id == child_id:
                raise InvalidEdge(parent_id, child_id)
            self._require(parent_id)
            self._require(child_id)
            if self.graph.has_edge(parent_id, child_id):
                raise DuplicateEdge(parent_id, child_id)
            if reachable(self.graph, child_id, parent_id):
                raise CycleRejected(parent_id, child_id)
        except RelationshipError as exc:
            LOGGER.info("Rejected relationship %s -> %s: %s", parent_id, child_id, type(exc).__name__)
            raise

    def _create(self, drafts: Sequence[Task], parent_ids: Sequence[int]) -> list[Task]:
        parents = list(dict.fromkeys(parent_ids))
        with self._write():
            for parent_id in parents:
                self._require(parent_id)
            tasks = []
            for draft in drafts:
                if self.repository is not None:
                    task = draft.with_updates(id=self.repository.insert_task(draft))
                else:
                    task = draft.with_updates(id=self._next_id)
                self._next_id = max(self._next_id, task.id) + 1
                tasks.append(task)
            # Brand-new tasks have no descendants, so none of these links can close a cycle.
            links = [Relationship(parent_id, task.id) for task in tasks for parent_id in parents]
            self._persist_links(added=links)
            for task in tasks:
                self.graph.add_node(task.id, task=task)
            self.graph.add_edges_from(rel.as_tuple() for rel in links)
        LOGGER.debug("Created tasks %s under %s", [task.id for task in tasks], parents)
        return tasks

    def _update(self, task_id: int, **changes: Any) -> Task:
        with self._write():
            task = self.get_task(task_id).with_updates(**changes)
            if self.repository is not None:
                self.repository.update_task(task)
            self.graph.nodes[task_id]["task"] = task
        return task

    def _persist_links(
        self,
        *,
        added: Sequence[Relationship] = (),
        removed: Sequence[Relationship] = (),
    ) -> None:
        if self.repository is None:
            return
        if removed:
            self.repository.delete_relationships(removed)
        if added:
            self.repository.insert_relationships(added)

    def _dependency_targets(self, task_id: int) -> list[int]:
        if task_id not in self.dependencies:
            return []
        return sorted(self.dependencies.successors(task_id))

    def _outgoing_dependencies(self, task_id: int) -> list[Dependency]:
        return [Dependency(task_id, target) for target in self._dependency_targets(task_id)]

    def _dependency_ids(self, task_id: int) -> dict[str, tuple[int, ...]]:
        if task_id not in self.dependencies:
            return {"depends_on_ids": (), "depended_by_ids": ()}
        return {
            "depends_on_ids": tuple(sorted(self.dependencies.successors(task_id))),
            "depended_by_ids": tuple(sorted(self.dependencies.predecessors(task_id))),
        }

    def _incident_dependencies(self, task_ids: set[int]) -> tuple[Dependency, ...]:
        present = [node for node in task_ids if node in self.dependencies]
        return tuple(
            sorted(
                {Dependency(*edge) for edge in self.dependencies.in_edges(present)}
                | {Dependency(*edge) for edge in self.dependencies.out_edges(present)}
            )
        )

    def _drop_dependencies(self, task_ids: Iterable[int]) -> None:
        # The repository cascades dependency rows with their tasks.
        self.dependencies.remove_nodes_from(list(task_ids))

    def _drop_dependency_edges(self, edges: Iterable[tuple[int, int]]) -> None:
        for source, target in edges:
            self.dependencies.remove_edge(source, target)
            for node in (source, target):
                if self.dependencies.degree(node) == 0:
                    self.dependencies.remove_node(node)

    @staticmethod
    def _check_snapshot_edge(
        tasks: nx.DiGraph,
        source: int,
        target: int,
        *,
        existing: Optional[nx.DiGraph] = None,
    ) -> None:
        if source == target:
            raise InvalidEdge(source, target)
        for endpoint in (source, target):
            if endpoint not in tasks:
                raise UnknownNode(endpoint)
        if (tasks if existing is None else existing).has_edge(source, target):
            raise DuplicateEdge(source, target)

    def _restore(
        self,
        tasks: Sequence[Task],
        links: Iterable[Relationship],
        *,
        removals: Iterable[Relationship],
        dependencies: Iterable[Dependency] = (),
    ) -> None:
        with self._write():
            for task in tasks:
                if task.id in self.graph:
                    raise GraphError(f"Task {task.id} already exists")
            restored_ids = {task.id for task in tasks}
            kept: list[Relationship] = []
            for rel in dict.fromkeys(links):
                if all(node in restored_ids or node in self.graph for node in rel.as_tuple()):
                    kept.append(rel)
                else:
                    LOGGER.warning(
                        "Skipping restore of %s -> %s: endpoint no longer exists",
                        rel.parent_id,
                        rel.child_id,
                    )
            stale = [rel for rel in removals if self.graph.has_edge(*rel.as_tuple())]
            kept_dependencies = self._restorable_dependencies(dependencies, restored_ids)

            candidate = self.graph.copy()
            candidate.add_nodes_from(restored_ids)
            candidate.remove_edges_from(rel.as_tuple() for rel in stale)
            candidate.add_edges_from(rel.as_tuple() for rel in kept)
            self._ensure_acyclic(candidate)
            waits = self.dependencies.copy()
            waits.add_edges_from(dep.as_tuple() for dep in kept_dependencies)
            self._ensure_acyclic(waits)

            if self.repository is not None:
                for task in tasks:
                    self.repository.insert_task(task)
                self.repository.insert_dependencies(kept_dependencies)
            self._persist_links(added=kept, removed=stale)
            for task in tasks:
                self.graph.add_node(task.id, task=task)
                self._next_id = max(self._next_id, task.id + 1)
            self.graph.remove_edges_from(rel.as_tuple() for rel in stale)
            self.graph.add_edges_from(rel.as_tuple() for rel in kept)
            self.dependencies.add_edges_from(dep.as_tuple() for dep in kept_dependencies)
        LOGGER.debug(
            "Restored %d tasks, %d relationships and %d dependencies",
            len(tasks),
            len(kept),
            len(kept_dependencies),
        )

    def _restorable_dependencies(
        self, dependencies: Iterable[Dependency], restored_ids: set[int]
    ) -> list[Dependency]:
        kept: list[Dependency] = []
        waiting: set[int] = set()
        for dep in dict.fromkeys(dependencies):
            if not all(node in restored_ids or node in self.graph for node in dep.as_tuple()):
                LOGGER.warning(
                    "Skipping restore of dependency %s -> %s: endpoint no longer exists",
                    dep.task_id,
                    dep.depends_on_id,
                )
            elif dep.task_id in waiting or self._dependency_targets(dep.task_id):
                LOGGER.warning(
                    "Skipping restore of dependency %s -> %s: task already has a dependency",
                    dep.task_id,
                    dep.depends_on_id,
                )
            else:
                kept.append(dep)
                waiting.add(dep.task_id)
        return kept

    @staticmethod
    def _ensure_acyclic(candidate: nx.DiGraph) -> None:
        if nx.is_directed_acyclic_graph(candidate):
            return
        parent_id, child_id = nx.find_cycle(candidate)[0][:2]
        raise CycleRejected(parent_id, child_id)

    def _tasks(self, node_ids: Iterable[int], active_only: bool) -> list[Task]:
        tasks = (self.graph.nodes[node]["task"] for node in node_ids)
        if active_only:
            tasks = (task for task in tasks if not task.is_completed)
        return sorted(tasks, key=_creation_order)


__all__ = ["GraphStore"]
