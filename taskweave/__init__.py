"""taskweave package initialization.

This module exposes the primary entry points used by external callers to
manage a multi-parent task hierarchy and lay it out as a graph.
"""

from .api import TaskWeaveApp, taskweave_tool

__all__ = ["TaskWeaveApp", "taskweave_tool"]
