"""Persistence utilities for taskweave."""

from .base import TaskRepository
from .export import GraphExporter
from .snapshot import SnapshotManager
from .sqlite import SQLiteTaskRepository

__all__ = ["GraphExporter", "SQLiteTaskRepository", "SnapshotManager", "TaskRepository"]
