"""Force-directed layout of the task graph."""

from .force import run_layout, run_layout_async
from .model import LayoutConfig, LayoutEdge, LayoutNode, LayoutResult
from .snapshot import LayoutInput, NodeSizing, build_layout_input, viewport_aspect_ratio

__all__ = [
    "LayoutConfig",
    "LayoutEdge",
    "LayoutInput",
    "LayoutNode",
    "LayoutResult",
    "NodeSizing",
    "build_layout_input",
    "run_layout",
    "run_layout_async",
    "viewport_aspect_ratio",
]
