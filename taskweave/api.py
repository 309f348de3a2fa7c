"""Public API surface for taskweave.

:class:`TaskWeaveApp` wires the graph store, the event bus and the layout
engine together for a presentation layer. It can be driven either through its
methods or through :meth:`TaskWeaveApp.handle` with ``{"action", "params"}``
payloads.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union

from taskweave.config import DB_PATH_ENV, get_env
from taskweave.graph.errors import LinkOutcome, RelationshipError
from taskweave.graph.ids import new_id
from taskweave.graph.model import Dependency, DeletedSubtree, DeletedTask, Relationship, Task
from taskweave.graph.store import GraphStore
from taskweave.layout import (
    LayoutConfig,
    LayoutResult,
    NodeSizing,
    build_layout_input,
    run_layout,
    run_layout_async,
    viewport_aspect_ratio,
)
from taskweave.obs.events import Event, EventBus
from taskweave.obs.log_config import configure_logging
from taskweave.persist.export import GraphExporter
from taskweave.persist.snapshot import SnapshotManager
from taskweave.persist.sqlite import SQLiteTaskRepository
from taskweave.router import ActionRouter

LOGGER = logging.getLogger(__name__)

_Deleted = Union[DeletedTask, DeletedSubtree]


def _task_payload(task: Task) -> dict:
    return {
        "id": task.id,
        "name": task.name,
        "created_at": task.created_at,
        "completed_at": task.completed_at,
        "attributes": dict(task.attributes),
    }


def _relationship_payload(rel: Relationship) -> dict:
    return {"parent_id": rel.parent_id, "child_id": rel.child_id}


def _dependency_payload(dep: Dependency) -> dict:
    return {"task_id": dep.task_id, "depends_on_id": dep.depends_on_id}


def _require_param(params: dict, key: str):
    if params.get(key) is None:
        raise KeyError(f"'{key}' is required")
    return params[key]


@dataclass
class TaskWeaveApp:
    """Container wiring together the core taskweave subsystems."""

    graph_store: GraphStore = field(default_factory=GraphStore)
    event_bus: EventBus = field(default_factory=EventBus)
    router: ActionRouter = field(default_factory=ActionRouter)
    snapshots: SnapshotManager = field(default_factory=SnapshotManager)
    layout_config: LayoutConfig = field(default_factory=LayoutConfig.from_env)
    _undo: dict[str, _Deleted] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._register_default_actions()

    @classmethod
    def from_env(cls) -> "TaskWeaveApp":
        """Build an app backed by ``TASKWEAVE_DB_PATH`` when it is set."""

        configure_logging()
        db_path = get_env(DB_PATH_ENV)
        if not db_path:
            return cls()
        LOGGER.info("Opening task database at %s", db_path)
        return cls(graph_store=GraphStore(repository=SQLiteTaskRepository(db_path)))

    def handle(self, payload: dict) -> dict:
        """Dispatch an API payload and return a canonical response.

        Rejected relationships are reported with ``ok`` set to ``False``;
        unknown actions and unknown task ids raise ``KeyError``.
        """

        action = payload.get("action")
        if not action:
            raise KeyError("payload must include 'action'")
        params = payload.get("params", {})
        emitted: list[Event] = []
        unsubscribe = self.event_bus.subscribe(emitted.append)
        try:
            result = self.router.dispatch(action, params)
        except RelationshipError as exc:
            self._emit_rejection(action, exc)
            ok, result, error = False, {}, {"code": type(exc).__name__, "message": str(exc)}
        else:
            self.event_bus.emit(level="info", msg=f"Executed action '{action}'", action=action)
            ok, error = True, None
        finally:
            unsubscribe()
        return {"ok": ok, "result": result, "events": [event.to_payload() for event in emitted], "error": error}

    # ------------------------------------------------------------------
    # Task operations
    # ------------------------------------------------------------------

    def create_task(self, name: str, *, parent_ids: Sequence[int] = (), attributes: Optional[dict] = None) -> Task:
        task = self.graph_store.create_task(name, parent_ids=parent_ids, attributes=attributes)
        self.event_bus.emit(
            level="info",
            msg=f"Created task '{name}'",
            action="create_task",
            target_ids=[task.id, *parent_ids],
        )
        return task

    def link(self, parent_id: int, child_id: int) -> LinkOutcome:
        """Add a relationship, reporting rejections as an outcome."""

        try:
            self._add_link(parent_id, child_id)
        except RelationshipError as exc:
            self._emit_rejection("link", exc)
            return LinkOutcome.from_error(exc)
        return LinkOutcome.ADDED

    def unlink(self, parent_id: int, child_id: int) -> bool:
        removed = self.graph_store.remove_relationship(parent_id, child_id)
        if removed:
            self.event_bus.emit(
                level="info",
                msg=f"Unlinked {parent_id} -> {child_id}",
                action="unlink",
                target_ids=[parent_id, child_id],
            )
        return removed

    def depend(self, task_id: int, depends_on_id: int) -> LinkOutcome:
        """Make ``task_id`` wait on ``depends_on_id``, replacing any earlier dependency."""

        try:
            self._add_dependency(task_id, depends_on_id)
        except RelationshipError as exc:
            self._emit_rejection("add_dependency", exc)
            return LinkOutcome.from_error(exc)
        return LinkOutcome.ADDED

    def undepend(self, task_id: int, depends_on_id: int) -> bool:
        removed = self.graph_store.remove_dependency(task_id, depends_on_id)
        if removed:
            self.event_bus.emit(
                level="info",
                msg=f"Task {task_id} no longer depends on {depends_on_id}",
                action="remove_dependency",
                target_ids=[task_id, depends_on_id],
            )
        return removed

    def move(self, task_id: int, from_parent_id: int, to_parent_id: int) -> LinkOutcome:
        outcome = self.graph_store.move_task(task_id, from_parent_id, to_parent_id)
        level = "info" if outcome.ok else "warning"
        self.event_bus.emit(
            level=level,
            msg=f"Move of {task_id} to {to_parent_id}: {outcome.value}",
            action="move_task",
            target_ids=[task_id, from_parent_id, to_parent_id],
        )
        return outcome

    def delete(self, task_id: int, *, mode: str = "single") -> tuple[str, _Deleted]:
        """Delete a task and remember how to undo it.

        ``mode`` is ``"single"`` (children may become roots), ``"reparent"``
        (children move up to the task's parents) or ``"subtree"``.
        """

        if mode == "single":
            deleted: _Deleted = self.graph_store.delete_task(task_id)
        elif mode == "reparent":
            deleted = self.graph_store.delete_task_and_reparent(task_id)
        elif mode == "subtree":
            deleted = self.graph_store.delete_subtree(task_id)
        else:
            raise ValueError(f"Unsupported delete mode: {mode}")
        token = new_id("undo")
        self._undo[token] = deleted
        self.event_bus.emit(
            level="info",
            msg=f"Deleted task {task_id} ({mode})",
            action="delete_task",
            target_ids=[task_id],
            extras={"undo_token": token},
        )
        return token, deleted

    def restore(self, token: str) -> list[Task]:
        """Undo the deletion identified by ``token``."""

        deleted = self._undo.get(token)
        if deleted is None:
            raise KeyError(f"Unknown undo token: {token}")
        if isinstance(deleted, DeletedSubtree):
            restored = self.graph_store.restore_subtree(deleted)
        else:
            restored = [self.graph_store.restore_task(deleted)]
        del self._undo[token]
        self.event_bus.emit(
            level="info",
            msg=f"Restored {len(restored)} task(s)",
            action="restore",
            target_ids=[task.id for task in restored],
        )
        return restored

    # ------------------------------------------------------------------
    # Layout, export and rollback
    # ------------------------------------------------------------------

    def layout(
        self,
        *,
        viewport: Optional[tuple[float, float]] = None,
        include_unrelated: bool = False,
        iterations: Optional[int] = None,
    ) -> tuple[LayoutResult, tuple[int, ...]]:
        """Lay out the active task graph; returns the result and unrelated task ids."""

        layout_input, config = self._prepare_layout(viewport, include_unrelated, iterations)
        result = run_layout(layout_input.nodes, layout_input.edges, config)
        return result, layout_input.unrelated_ids

    async def layout_async(
        self,
        *,
        viewport: Optional[tuple[float, float]] = None,
        include_unrelated: bool = False,
        iterations: Optional[int] = None,
    ) -> tuple[LayoutResult, tuple[int, ...]]:
        """Same as :meth:`layout` but computed in a worker thread."""

        layout_input, config = self._prepare_layout(viewport, include_unrelated, iterations)
        result = await run_layout_async(layout_input.nodes, layout_input.edges, config)
        return result, layout_input.unrelated_ids

    def export(self, *, format: str = "json") -> str:
        return GraphExporter(self.graph_store.snapshot()).export(format=format)

    def snapshot(self) -> int:
        self.snapshots.snapshot(self.graph_store.snapshot())
        return len(self.snapshots)

    def rollback(self) -> int:
        """Reload the latest snapshot; pending undo tokens are discarded."""

        snapshot = self.snapshots.rollback()
        self.graph_store.load_snapshot(snapshot)
        self._undo.clear()
        self.event_bus.emit(level="info", msg="Rolled back to previous snapshot", action="rollback")
        return len(snapshot.tasks)

    # ------------------------------------------------------------------
    # Payload handlers
    # ------------------------------------------------------------------

    def _register_default_actions(self) -> None:
        register = self.router.register
        register("create_task", self._handle_create_task)
        register("create_tasks", self._handle_create_tasks)
        register("rename_task", self._handle_rename_task)
        register("complete_task", self._handle_complete_task)
        register("uncomplete_task", self._handle_uncomplete_task)
        register("delete_task", self._deletion_handler("single"))
        register("delete_task_reparent", self._deletion_handler("reparent"))
        register("delete_subtree", self._deletion_handler("subtree"))
        register("restore", self._handle_restore)
        register("link", self._handle_link)
        register("unlink", self._handle_unlink)
        register("move_task", self._handle_move_task)
        register("add_dependency", self._handle_add_dependency)
        register("remove_dependency", self._handle_remove_dependency)
        register("has_path", self._handle_has_path)
        register("query", self._handle_query)
        register("layout", self._handle_layout)
        register("export_graph", lambda params: {"data": self.export(format=params.get("format", "json"))})
        register("snapshot", lambda params: {"snapshots": self.snapshot()})
        register("rollback", lambda params: {"tasks": self.rollback()})

    def _handle_create_task(self, params: dict) -> dict:
        task = self.create_task(
            _require_param(params, "name"),
            parent_ids=list(params.get("parent_ids") or []),
            attributes=params.get("attributes"),
        )
        return {"task": _task_payload(task)}

    def _handle_create_tasks(self, params: dict) -> dict:
        tasks = self.graph_store.create_tasks(
            list(_require_param(params, "names")),
            parent_id=params.get("parent_id"),
        )
        return {"tasks": [_task_payload(task) for task in tasks]}

    def _handle_rename_task(self, params: dict) -> dict:
        task = self.graph_store.rename_task(_require_param(params, "task_id"), _require_param(params, "name"))
        return {"task": _task_payload(task)}

    def _handle_complete_task(self, params: dict) -> dict:
        return {"task": _task_payload(self.graph_store.complete_task(_require_param(params, "task_id")))}

    def _handle_uncomplete_task(self, params: dict) -> dict:
        return {"task": _task_payload(self.graph_store.uncomplete_task(_require_param(params, "task_id")))}

    def _deletion_handler(self, mode: str):
        def _handler(params: dict) -> dict:
            token, deleted = self.delete(_require_param(params, "task_id"), mode=mode)
            if isinstance(deleted, DeletedSubtree):
                deleted_ids = list(deleted.task_ids)
            else:
                deleted_ids = [deleted.task.id]
            return {"undo_token": token, "deleted_ids": deleted_ids}

        return _handler

    def _handle_restore(self, params: dict) -> dict:
        tasks = self.restore(_require_param(params, "undo_token"))
        return {"tasks": [_task_payload(task) for task in tasks]}

    def _handle_link(self, params: dict) -> dict:
        # Raises so that ``handle`` reports the rejection with its error code.
        relationship = self._add_link(_require_param(params, "parent_id"), _require_param(params, "child_id"))
        return {"relationship": _relationship_payload(relationship)}

    def _handle_unlink(self, params: dict) -> dict:
        removed = self.unlink(_require_param(params, "parent_id"), _require_param(params, "child_id"))
        return {"removed": removed}

    def _handle_add_dependency(self, params: dict) -> dict:
        dependency = self._add_dependency(
            _require_param(params, "task_id"), _require_param(params, "depends_on_id")
        )
        return {"dependency": _dependency_payload(dependency)}

    def _handle_remove_dependency(self, params: dict) -> dict:
        removed = self.undepend(_require_param(params, "task_id"), _require_param(params, "depends_on_id"))
        return {"removed": removed}

    def _handle_move_task(self, params: dict) -> dict:
        outcome = self.move(
            _require_param(params, "task_id"),
            _require_param(params, "from_parent_id"),
            _require_param(params, "to_parent_id"),
        )
        return {"outcome": outcome.value, "moved": outcome.ok}

    def _handle_has_path(self, params: dict) -> dict:
        found = self.graph_store.has_path(_require_param(params, "from_id"), _require_param(params, "to_id"))
        return {"has_path": found}

    def _handle_query(self, params: dict) -> dict:
        kind = params.get("kind", "roots")
        active_only = bool(params.get("active_only", False))
        store = self.graph_store
        if kind == "roots":
            return {"items": [_task_payload(task) for task in store.get_root_tasks(active_only=active_only)]}
        if kind == "all":
            return {"items": [_task_payload(task) for task in store.get_all_tasks(active_only=active_only)]}
        if kind == "leaves":
            return {"items": [_task_payload(task) for task in store.get_leaf_tasks(active_only=active_only)]}
        if kind == "children":
            tasks = store.get_children(_require_param(params, "task_id"), active_only=active_only)
            return {"items": [_task_payload(task) for task in tasks]}
        if kind == "parents":
            tasks = store.get_parents(_require_param(params, "task_id"), active_only=active_only)
            return {"items": [_task_payload(task) for task in tasks]}
        if kind == "parent_ids":
            return {"items": store.get_parent_ids(_require_param(params, "task_id"))}
        if kind == "child_ids":
            return {"items": store.get_child_ids(_require_param(params, "task_id"))}
        if kind == "relationships":
            rels = store.get_all_relationships(active_only=active_only)
            return {"items": [_relationship_payload(rel) for rel in rels]}
        if kind == "parent_names":
            names = store.get_parent_names_map(active_only=active_only)
            return {"items": {str(child_id): parents for child_id, parents in names.items()}}
        if kind == "parent_names_for":
            names = store.get_parent_names_for(_require_param(params, "task_ids"))
            return {"items": {str(child_id): parents for child_id, parents in names.items()}}
        if kind == "completed":
            return {"items": [_task_payload(task) for task in store.get_completed_tasks()]}
        if kind == "dependencies":
            tasks = store.get_dependencies(_require_param(params, "task_id"))
            return {"items": [_task_payload(task) for task in tasks]}
        if kind == "blocked_child_ids":
            return {"items": sorted(store.get_blocked_child_ids(_require_param(params, "task_ids")))}
        raise ValueError(f"Unsupported query kind: {kind}")

    def _handle_layout(self, params: dict) -> dict:
        viewport = params.get("viewport")
        result, unrelated = self.layout(
            viewport=tuple(viewport) if viewport else None,
            include_unrelated=bool(params.get("include_unrelated", False)),
            iterations=params.get("iterations"),
        )
        payload = result.to_payload()
        payload["unrelated_ids"] = list(unrelated)
        return payload

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prepare_layout(
        self,
        viewport: Optional[tuple[float, float]],
        include_unrelated: bool,
        iterations: Optional[int],
    ):
        config = self.layout_config
        sizing = NodeSizing()
        overrides: dict = {}
        if viewport is not None:
            width, height = viewport
            sizing = NodeSizing.for_viewport(width)
            overrides["aspect_ratio"] = viewport_aspect_ratio(width, height)
        if iterations is not None:
            overrides["iterations"] = int(iterations)
        if overrides:
            config = replace(config, **overrides)
        layout_input = build_layout_input(
            self.graph_store.snapshot(), sizing, include_unrelated=include_unrelated
        )
        return layout_input, config

    def _add_link(self, parent_id: int, child_id: int) -> Relationship:
        relationship = self.graph_store.add_relationship(parent_id, child_id)
        self.event_bus.emit(
            level="info",
            msg=f"Linked {parent_id} -> {child_id}",
            action="link",
            target_ids=[parent_id, child_id],
        )
        return relationship

    def _add_dependency(self, task_id: int, depends_on_id: int) -> Dependency:
        dependency = self.graph_store.add_dependency(task_id, depends_on_id)
        self.event_bus.emit(
            level="info",
            msg=f"Task {task_id} depends on {depends_on_id}",
            action="add_dependency",
            target_ids=[task_id, depends_on_id],
        )
        return dependency

    def _emit_rejection(self, action: str, exc: RelationshipError) -> None:
        self.event_bus.emit(
            level="warning",
            msg=str(exc),
            action=action,
            target_ids=[exc.parent_id, exc.child_id],
            extras={"code": type(exc).__name__},
        )


_APP: Optional[TaskWeaveApp] = None


def taskweave_tool(payload: dict) -> dict:
    """Entry point exposed to external callers; uses a process-wide app."""

    global _APP
    if _APP is None:
        _APP = TaskWeaveApp.from_env()
    return _APP.handle(payload)


__all__ = ["TaskWeaveApp", "taskweave_tool"]
