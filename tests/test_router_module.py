"""Integration-style tests for :mod:`taskweave.router`."""

from __future__ import annotations

import pytest

from taskweave.api import TaskWeaveApp
from taskweave.router import ActionRouter


def test_router_dispatches_registered_handler_creates_real_task():
    """Ensure the router dispatches to the actual ``create_task`` handler."""

    app = TaskWeaveApp()

    result = app.router.dispatch("create_task", {"name": "Router test task"})

    task_id = result["task"]["id"]
    assert app.graph_store.get_task(task_id).name == "Router test task"


def test_router_dispatches_link_and_persists_relationship():
    app = TaskWeaveApp()
    parent = app.router.dispatch("create_task", {"name": "parent"})["task"]["id"]
    child = app.router.dispatch("create_task", {"name": "child"})["task"]["id"]

    result = app.router.dispatch("link", {"parent_id": parent, "child_id": child})

    assert result["relationship"] == {"parent_id": parent, "child_id": child}
    assert app.graph_store.get_parent_ids(child) == [parent]


def test_router_register_as_decorator_and_rejects_duplicates():
    router = ActionRouter()

    @router.register("ping")
    def ping(params: dict) -> dict:
        return {"pong": params.get("value")}

    assert router.dispatch("ping", {"value": 3}) == {"pong": 3}
    assert router.actions() == ["ping"]
    with pytest.raises(ValueError):
        router.register("ping", ping)


def test_router_dispatch_missing_action_raises():
    app = TaskWeaveApp()

    with pytest.raises(KeyError) as excinfo:
        app.router.dispatch("unknown_action", {})
    assert "unknown_action" in str(excinfo.value)
