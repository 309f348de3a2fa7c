"""Tests for :mod:`taskweave.persist.sqlite`."""

from __future__ import annotations

import pytest

from taskweave.graph.errors import CycleRejected, RepositoryError
from taskweave.graph.model import Dependency, Relationship, Task
from taskweave.graph.store import GraphStore
from taskweave.persist.sqlite import SQLiteTaskRepository


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "nested" / "tasks.db"


def test_insert_task_assigns_ids_and_loads_back():
    repo = SQLiteTaskRepository()
    first = repo.insert_task(Task(id=0, name="one", created_at=1, attributes={"tag": "x"}))
    second = repo.insert_task(Task(id=0, name="two", created_at=2))
    repo.insert_relationships([Relationship(first, second)])

    tasks, relationships, dependencies = repo.load()

    assert [task.name for task in tasks] == ["one", "two"]
    assert tasks[0].attributes == {"tag": "x"}
    assert relationships == [Relationship(first, second)]
    assert dependencies == []


def test_deleting_a_task_cascades_to_its_relationships():
    repo = SQLiteTaskRepository()
    ids = [repo.insert_task(Task(id=0, name=name, created_at=0)) for name in ("a", "b", "c")]
    repo.insert_relationships([Relationship(ids[0], ids[1]), Relationship(ids[1], ids[2])])

    repo.delete_tasks([ids[1]])

    tasks, relationships, _ = repo.load()
    assert [task.id for task in tasks] == [ids[0], ids[2]]
    assert relationships == []


def test_duplicate_relationship_raises_repository_error():
    repo = SQLiteTaskRepository()
    a = repo.insert_task(Task(id=0, name="a", created_at=0))
    b = repo.insert_task(Task(id=0, name="b", created_at=0))
    repo.insert_relationships([Relationship(a, b)])

    with pytest.raises(RepositoryError):
        repo.insert_relationships([Relationship(a, b)])


def test_transaction_rolls_back_on_error():
    repo = SQLiteTaskRepository()

    with pytest.raises(RuntimeError):
        with repo.transaction():
            repo.insert_task(Task(id=0, name="lost", created_at=0))
            with repo.transaction():
                repo.insert_task(Task(id=0, name="also lost", created_at=0))
            raise RuntimeError("boom")

    assert repo.load() == ([], [], [])


def test_graph_store_persists_and_reloads_from_file(db_path):
    repo = SQLiteTaskRepository(db_path)
    store = GraphStore(repository=repo)
    root = store.create_task("root")
    child = store.create_task("child", parent_ids=[root.id])
    store.complete_task(child.id, completed_at=99)
    repo.close()

    reloaded = GraphStore(repository=SQLiteTaskRepository(db_path))

    assert [task.name for task in reloaded.get_all_tasks()] == ["root", "child"]
    assert reloaded.get_task(child.id).completed_at == 99
    assert reloaded.get_parent_ids(child.id) == [root.id]
    assert reloaded.create_task("next").id == child.id + 1


def test_rejected_relationship_is_not_persisted():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    b = store.create_task("b", parent_ids=[a]).id

    with pytest.raises(CycleRejected):
        store.add_relationship(b, a)

    assert repo.load()[1] == [Relationship(a, b)]


def test_delete_and_restore_are_mirrored_in_the_database():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    b = store.create_task("b", parent_ids=[a]).id
    c = store.create_task("c", parent_ids=[b]).id

    deleted = store.delete_task_and_reparent(b)
    assert repo.load()[1] == [Relationship(a, c)]

    store.restore_task(deleted)
    tasks, relationships, _ = repo.load()
    assert [task.id for task in tasks] == [a, b, c]
    assert relationships == [Relationship(a, b), Relationship(b, c)]


def test_failed_repository_write_leaves_graph_unchanged():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    b = store.create_task("b").id
    # Pre-insert the row so the store's own insert hits the primary key.
    repo.insert_relationships([Relationship(a, b)])

    with pytest.raises(RepositoryError):
        store.add_relationship(a, b)

    assert store.get_all_relationships() == []


def test_load_snapshot_replaces_database_contents():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    store.create_task("b", parent_ids=[a])
    snapshot = store.snapshot()
    store.delete_subtree(a)

    store.load_snapshot(snapshot)

    tasks, relationships, _ = repo.load()
    assert [task.name for task in tasks] == ["a", "b"]
    assert len(relationships) == 1


def test_deleting_a_task_cascades_to_its_dependencies():
    repo = SQLiteTaskRepository()
    ids = [repo.insert_task(Task(id=0, name=name, created_at=0)) for name in ("a", "b", "c")]
    repo.insert_dependencies([Dependency(ids[1], ids[0]), Dependency(ids[2], ids[1])])

    repo.delete_tasks([ids[0]])

    assert repo.load()[2] == [Dependency(ids[2], ids[1])]


def test_store_dependencies_survive_reload_and_replacement(db_path):
    repo = SQLiteTaskRepository(db_path)
    store = GraphStore(repository=repo)
    a, b, c = (store.create_task(name).id for name in ("a", "b", "c"))
    store.add_dependency(c, a)
    store.add_dependency(c, b)
    repo.close()

    reloaded_repo = SQLiteTaskRepository(db_path)
    reloaded = GraphStore(repository=reloaded_repo)

    assert reloaded_repo.load()[2] == [Dependency(c, b)]
    assert [task.id for task in reloaded.get_dependencies(c)] == [b]


def test_delete_and_restore_keep_dependency_rows_in_step():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    b = store.create_task("b").id
    store.add_dependency(b, a)

    deleted = store.delete_task(a)
    assert repo.load()[2] == []

    store.restore_task(deleted)
    assert repo.load()[2] == [Dependency(b, a)]


def test_load_snapshot_writes_dependencies():
    repo = SQLiteTaskRepository()
    store = GraphStore(repository=repo)
    a = store.create_task("a").id
    b = store.create_task("b").id
    store.add_dependency(b, a)
    snapshot = store.snapshot()
    store.remove_dependency(b, a)

    store.load_snapshot(snapshot)

    assert repo.load()[2] == [Dependency(b, a)]
