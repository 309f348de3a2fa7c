"""SQLite implementation of :class:`~taskweave.persist.base.TaskRepository`."""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from taskweave.graph.errors import RepositoryError
from taskweave.graph.model import Dependency, Relationship, Task

LOGGER = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        completed_at INTEGER,
        attributes TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_relationships (
        parent_id INTEGER NOT NULL,
        child_id INTEGER NOT NULL,
        PRIMARY KEY (parent_id, child_id),
        FOREIGN KEY (parent_id) REFERENCES tasks(id) ON DELETE CASCADE,
        FOREIGN KEY (child_id) REFERENCES tasks(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_task_relationships_child ON task_relationships(child_id)",
    """
    CREATE TABLE IF NOT EXISTS task_dependencies (
        task_id INTEGER NOT NULL,
        depends_on_id INTEGER NOT NULL,
        PRIMARY KEY (task_id, depends_on_id),
        FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
        FOREIGN KEY (depends_on_id) REFERENCES tasks(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_task_dependencies_target ON task_dependencies(depends_on_id)",
)


class SQLiteTaskRepository:
    """Persist tasks, relationships and dependencies in a single SQLite database file.

    The connection runs in autocommit mode; :meth:`transaction` opens an
    explicit ``BEGIN IMMEDIATE`` block so multi-row changes commit together.
    Nested ``transaction`` blocks join the outermost one.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._depth = 0
        try:
            self._connection = sqlite3.connect(
                self.db_path,
                isolation_level=None,
                check_same_thread=False,
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            for statement in _SCHEMA:
                self._connection.execute(statement)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to initialise database at {self.db_path}: {exc}") from exc

    def close(self) -> None:
        self._connection.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost and self._connection.in_transaction:
                    self._connection.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    self._execute("COMMIT")

    def load(self) -> tuple[list[Task], list[Relationship], list[Dependency]]:
        with self._lock:
            task_rows = self._execute(
                "SELECT id, name, created_at, completed_at, attributes FROM tasks ORDER BY id"
            ).fetchall()
            rel_rows = self._execute(
                "SELECT parent_id, child_id FROM task_relationships ORDER BY parent_id, child_id"
            ).fetchall()
            dep_rows = self._execute(
                "SELECT task_id, depends_on_id FROM task_dependencies ORDER BY task_id, depends_on_id"
            ).fetchall()
        tasks = [Task.from_row(dict(row)) for row in task_rows]
        relationships = [Relationship(row["parent_id"], row["child_id"]) for row in rel_rows]
        dependencies = [Dependency(row["task_id"], row["depends_on_id"]) for row in dep_rows]
        return tasks, relationships, dependencies

    def insert_task(self, task: Task) -> int:
        row = task.to_row()
        with self._lock:
            if task.id > 0:
                self._execute(
                    "INSERT INTO tasks (id, name, created_at, completed_at, attributes)"
                    " VALUES (:id, :name, :created_at, :completed_at, :attributes)",
                    row,
                )
                return task.id
            cursor = self._execute(
                "INSERT INTO tasks (name, created_at, completed_at, attributes)"
                " VALUES (:name, :created_at, :completed_at, :attributes)",
                row,
            )
            return int(cursor.lastrowid)

    def update_task(self, task: Task) -> None:
        with self._lock:
            self._execute(
                "UPDATE tasks SET name = :name, created_at = :created_at,"
                " completed_at = :completed_at, attributes = :attributes WHERE id = :id",
                task.to_row(),
            )

    def delete_tasks(self, task_ids: Iterable[int]) -> None:
        with self._lock:
            self._executemany("DELETE FROM tasks WHERE id = ?", [(task_id,) for task_id in task_ids])

    def insert_relationships(self, relationships: Iterable[Relationship]) -> None:
        with self._lock:
            self._executemany(
                "INSERT INTO task_relationships (parent_id, child_id) VALUES (?, ?)",
                [rel.as_tuple() for rel in relationships],
            )

    def delete_relationships(self, relationships: Iterable[Relationship]) -> None:
        with self._lock:
            self._executemany(
                "DELETE FROM task_relationships WHERE parent_id = ? AND child_id = ?",
                [rel.as_tuple() for rel in relationships],
            )

    def insert_dependencies(self, dependencies: Iterable[Dependency]) -> None:
        with self._lock:
            self._executemany(
                "INSERT INTO task_dependencies (task_id, depends_on_id) VALUES (?, ?)",
                [dep.as_tuple() for dep in dependencies],
            )

    def delete_dependencies(self, dependencies: Iterable[Dependency]) -> None:
        with self._lock:
            self._executemany(
                "DELETE FROM task_dependencies WHERE task_id = ? AND depends_on_id = ?",
                [dep.as_tuple() for dep in dependencies],
            )

    def replace_all(
        self,
        tasks: Iterable[Task],
        relationships: Iterable[Relationship],
        dependencies: Iterable[Dependency] = (),
    ) -> None:
        with self.transaction():
            self._execute("DELETE FROM task_dependencies")
            self._execute("DELETE FROM task_relationships")
            self._execute("DELETE FROM tasks")
            self._executemany(
                "INSERT INTO tasks (id, name, created_at, completed_at, attributes)"
                " VALUES (:id, :name, :created_at, :completed_at, :attributes)",
                [task.to_row() for task in tasks],
            )
            self.insert_relationships(relationships)
            self.insert_dependencies(dependencies)

    # -- internal helpers -------------------------------------------------

    def _execute(self, sql: str, params=()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as exc:
            LOGGER.error("SQLite statement failed: %s (%s)", sql.split()[0], exc)
            raise RepositoryError(str(exc)) from exc

    def _executemany(self, sql: str, rows: list) -> None:
        if not rows:
            return
        try:
            self._connection.executemany(sql, rows)
        except sqlite3.Error as exc:
            LOGGER.error("SQLite batch failed: %s (%s)", sql.split()[0], exc)
            raise RepositoryError(str(exc)) from exc


__all__ = ["SQLiteTaskRepository"]
