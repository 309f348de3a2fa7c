"""End-to-end tests for :class:`taskweave.api.TaskWeaveApp`."""

from __future__ import annotations

import asyncio
import json

import pytest

from taskweave import config, taskweave_tool
from taskweave.api import TaskWeaveApp
from taskweave.graph.errors import LinkOutcome, UnknownNode
from taskweave.layout import LayoutConfig


@pytest.fixture()
def app() -> TaskWeaveApp:
    return TaskWeaveApp(layout_config=LayoutConfig(iterations=60))


def _create(app: TaskWeaveApp, name: str, **params) -> int:
    response = app.handle({"action": "create_task", "params": {"name": name, **params}})
    assert response["ok"] is True
    return response["result"]["task"]["id"]


def test_handle_requires_action(app: TaskWeaveApp) -> None:
    with pytest.raises(KeyError):
        app.handle({"params": {}})


def test_create_and_query_roots(app: TaskWeaveApp) -> None:
    root = _create(app, "Root")
    child = _create(app, "Child", parent_ids=[root])

    response = app.handle({"action": "query", "params": {"kind": "roots"}})

    assert [item["id"] for item in response["result"]["items"]] == [root]
    children = app.handle({"action": "query", "params": {"kind": "child_ids", "task_id": root}})
    assert children["result"]["items"] == [child]
    assert response["events"][-1]["action"] == "query"


def test_cycle_rejection_is_reported_not_raised(app: TaskWeaveApp) -> None:
    first = _create(app, "1")
    second = _create(app, "2", parent_ids=[first])

    response = app.handle({"action": "link", "params": {"parent_id": second, "child_id": first}})

    assert response["ok"] is False
    assert response["error"]["code"] == "CycleRejected"
    assert response["events"][0]["level"] == "warning"
    assert app.graph_store.get_parent_ids(first) == []


def test_link_returns_outcome(app: TaskWeaveApp) -> None:
    a = app.create_task("a").id
    b = app.create_task("b").id

    assert app.link(a, b) is LinkOutcome.ADDED
    assert app.link(a, b) is LinkOutcome.DUPLICATE
    assert app.unlink(a, b) is True
    assert app.unlink(a, b) is False


def test_unknown_task_raises_unknown_node(app: TaskWeaveApp) -> None:
    with pytest.raises(UnknownNode):
        app.handle({"action": "has_path", "params": {"from_id": 1, "to_id": 2}})


def test_move_task_action(app: TaskWeaveApp) -> None:
    old = _create(app, "old")
    new = _create(app, "new")
    task = _create(app, "task", parent_ids=[old])

    response = app.handle(
        {"action": "move_task", "params": {"task_id": task, "from_parent_id": old, "to_parent_id": new}}
    )

    assert response["result"] == {"outcome": "added", "moved": True}
    assert app.graph_store.get_parent_ids(task) == [new]


@pytest.mark.parametrize(
    ("action", "remaining"),
    [("delete_task", [1, 3]), ("delete_task_reparent", [1, 3]), ("delete_subtree", [1])],
)
def test_delete_actions_can_be_undone(app: TaskWeaveApp, action: str, remaining: list) -> None:
    first = _create(app, "1")
    second = _create(app, "2", parent_ids=[first])
    _create(app, "3", parent_ids=[second])
    before = app.graph_store.snapshot()

    response = app.handle({"action": action, "params": {"task_id": second}})
    assert [task.id for task in app.graph_store.get_all_tasks()] == remaining

    token = response["result"]["undo_token"]
    app.handle({"action": "restore", "params": {"undo_token": token}})
    assert app.graph_store.snapshot() == before

    with pytest.raises(KeyError):
        app.restore(token)


def test_complete_task_hides_it_from_layout(app: TaskWeaveApp) -> None:
    root = _create(app, "root")
    child = _create(app, "child", parent_ids=[root])
    done = _create(app, "done", parent_ids=[root])
    loose = _create(app, "loose")
    app.handle({"action": "complete_task", "params": {"task_id": done}})

    response = app.handle({"action": "layout", "params": {"viewport": [1200, 800]}})

    result = response["result"]
    assert set(result["positions"]) == {str(root), str(child)}
    assert result["unrelated_ids"] == [loose]
    assert result["width"] > 0 and result["height"] > 0


def test_layout_async_matches_layout(app: TaskWeaveApp) -> None:
    root = app.create_task("root").id
    app.create_task("child", parent_ids=[root])

    sync_result, _ = app.layout(iterations=30)
    async_result, _ = asyncio.run(app.layout_async(iterations=30))

    assert sync_result == async_result
    assert sync_result.iterations_run == 30


def test_snapshot_rollback_and_export(app: TaskWeaveApp) -> None:
    root = _create(app, "root")
    app.handle({"action": "snapshot"})
    _create(app, "extra", parent_ids=[root])

    response = app.handle({"action": "rollback"})

    assert response["result"] == {"tasks": 1}
    exported = json.loads(app.handle({"action": "export_graph", "params": {"format": "json"}})["result"]["data"])
    assert [node["name"] for node in exported["nodes"]] == ["root"]


def test_rename_and_parent_names_query(app: TaskWeaveApp) -> None:
    a = _create(app, "a")
    b = _create(app, "b")
    shared = _create(app, "shared", parent_ids=[a, b])
    app.handle({"action": "rename_task", "params": {"task_id": b, "name": "Beta"}})

    response = app.handle({"action": "query", "params": {"kind": "parent_names"}})

    assert response["result"]["items"] == {str(shared): ["Beta", "a"]}


def test_from_env_uses_sqlite_when_configured(monkeypatch, tmp_path) -> None:
    config._load_environment.cache_clear()
    monkeypatch.setenv(config.DB_PATH_ENV, str(tmp_path / "tasks.db"))
    monkeypatch.setenv(config.LOG_LEVEL_ENV, "0")

    first = TaskWeaveApp.from_env()
    first.create_task("persisted")

    second = TaskWeaveApp.from_env()
    assert [task.name for task in second.graph_store.get_all_tasks()] == ["persisted"]


def test_taskweave_tool_uses_a_shared_app(monkeypatch) -> None:
    config._load_environment.cache_clear()
    monkeypatch.delenv(config.DB_PATH_ENV, raising=False)
    monkeypatch.setattr("taskweave.api._APP", None)

    created = taskweave_tool({"action": "create_task", "params": {"name": "tool"}})
    listed = taskweave_tool({"action": "query", "params": {"kind": "all"}})

    assert created["ok"] is True
    assert [item["name"] for item in listed["result"]["items"]] == ["tool"]


def test_rollback_discards_pending_undo_tokens(app: TaskWeaveApp) -> None:
    task = _create(app, "task")
    app.handle({"action": "snapshot"})
    token = app.handle({"action": "delete_task", "params": {"task_id": task}})["result"]["undo_token"]

    app.handle({"action": "rollback"})

    assert [item.id for item in app.graph_store.get_all_tasks()] == [task]
    with pytest.raises(KeyError):
        app.handle({"action": "restore", "params": {"undo_token": token}})


@pytest.mark.parametrize("via_handle", [True, False])
def test_successful_link_emits_a_single_link_event(app: TaskWeaveApp, via_handle: bool) -> None:
    a = app.create_task("a").id
    b = app.create_task("b").id
    seen = []
    app.event_bus.subscribe(seen.append)

    if via_handle:
        app.handle({"action": "link", "params": {"parent_id": a, "child_id": b}})
    else:
        app.link(a, b)

    link_events = [event for event in seen if event.action == "link"]
    assert len(link_events) == 1
    assert link_events[0].msg == f"Linked {a} -> {b}"
    assert link_events[0].target_ids == (a, b)


def test_dependency_actions_and_queries(app: TaskWeaveApp) -> None:
    parent = _create(app, "parent")
    a = _create(app, "a", parent_ids=[parent])
    b = _create(app, "b", parent_ids=[parent])

    added = app.handle({"action": "add_dependency", "params": {"task_id": b, "depends_on_id": a}})
    assert added["result"] == {"dependency": {"task_id": b, "depends_on_id": a}}

    rejected = app.handle({"action": "add_dependency", "params": {"task_id": a, "depends_on_id": b}})
    assert rejected["ok"] is False
    assert rejected["error"]["code"] == "CycleRejected"

    blocked = app.handle({"action": "query", "params": {"kind": "blocked_child_ids", "task_ids": [a, b]}})
    assert blocked["result"]["items"] == [b]
    deps = app.handle({"action": "query", "params": {"kind": "dependencies", "task_id": b}})
    assert [item["id"] for item in deps["result"]["items"]] == [a]

    removed = app.handle({"action": "remove_dependency", "params": {"task_id": b, "depends_on_id": a}})
    assert removed["result"] == {"removed": True}
    assert app.depend(b, b) is LinkOutcome.INVALID


def test_delete_undo_restores_dependencies(app: TaskWeaveApp) -> None:
    a = _create(app, "a")
    b = _create(app, "b")
    app.depend(b, a)

    token, _ = app.delete(a)
    assert app.graph_store.get_dependencies(b) == []

    app.restore(token)
    assert [task.id for task in app.graph_store.get_dependencies(b)] == [a]


def test_completed_and_parent_names_for_queries(app: TaskWeaveApp) -> None:
    done = _create(app, "done")
    child = _create(app, "child", parent_ids=[done])
    app.graph_store.complete_task(done, completed_at=10)
    app.graph_store.complete_task(child, completed_at=20)

    completed = app.handle({"action": "query", "params": {"kind": "completed"}})
    names = app.handle({"action": "query", "params": {"kind": "parent_names_for", "task_ids": [child]}})

    assert [item["id"] for item in completed["result"]["items"]] == [child, done]
    assert names["result"]["items"] == {str(child): ["done"]}
