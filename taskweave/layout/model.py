"""Input, configuration and result types for the force-directed layout."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Hashable, Mapping, Optional

from taskweave.config import (
    LAYOUT_ASPECT_RATIO_ENV,
    LAYOUT_ITERATIONS_ENV,
    get_env_float,
    get_env_int,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutNode:
    """A node to be positioned, with its bounding-box size and cluster metadata.

    ``cluster`` is the id of the root the node primarily descends from
    (``None`` when unknown). ``affinity`` lists every root cluster the node is
    connected to; when left empty it defaults to ``{cluster}``.
    """

    id: Hashable
    is_root: bool
    width: float
    height: float
    depth: int = 0
    cluster: Optional[Hashable] = None
    affinity: frozenset = frozenset()

    def __post_init__(self) -> None:
        # Negative or non-finite sizes are clamped rather than rejected.
        object.__setattr__(self, "width", _clamp_size(self.width))
        object.__setattr__(self, "height", _clamp_size(self.height))
        if not self.affinity and self.cluster is not None:
            object.__setattr__(self, "affinity", frozenset({self.cluster}))
        else:
            object.__setattr__(self, "affinity", frozenset(self.affinity))


def _clamp_size(value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


@dataclass(frozen=True)
class LayoutEdge:
    """Directed edge from ``source_id`` (parent) to ``dest_id`` (child)."""

    source_id: Hashable
    dest_id: Hashable


@dataclass(frozen=True)
class LayoutConfig:
    """Tuning knobs for :func:`taskweave.layout.force.run_layout`.

    Only ``iterations`` and ``aspect_ratio`` are meant to be adjusted by
    callers; the remaining fields are the physics constants of the simulation.
    """

    iterations: int = 300
    aspect_ratio: float = 1.4
    repulsion_strength: float = 8000.0
    attraction_strength: float = 0.02
    ideal_edge_length: float = 220.0
    root_gravity: float = 0.06
    non_root_gravity: float = 0.002
    start_temperature: float = 200.0
    cluster_repulsion_multiplier: float = 5.0
    root_cohesion: float = 0.02
    parent_cohesion: float = 0.015

    def __post_init__(self) -> None:
        if isinstance(self.iterations, bool) or not isinstance(self.iterations, int):
            raise ValueError(f"iterations must be an integer, got {self.iterations!r}")
        if self.iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {self.iterations}")
        if not math.isfinite(self.aspect_ratio) or self.aspect_ratio <= 0:
            raise ValueError(f"aspect_ratio must be a positive number, got {self.aspect_ratio}")

    @classmethod
    def from_env(cls, **overrides) -> "LayoutConfig":
        """Build a config from ``TASKWEAVE_LAYOUT_*`` variables plus ``overrides``.

        Out-of-range environment values fall back to the defaults with a
        warning; ``overrides`` are validated strictly.
        """

        iterations = get_env_int(LAYOUT_ITERATIONS_ENV, cls.iterations)
        if iterations < 0:
            LOGGER.warning("Ignoring %s=%d; using %d", LAYOUT_ITERATIONS_ENV, iterations, cls.iterations)
            iterations = cls.iterations
        aspect_ratio = get_env_float(LAYOUT_ASPECT_RATIO_ENV, cls.aspect_ratio)
        if not math.isfinite(aspect_ratio) or aspect_ratio <= 0:
            LOGGER.warning(
                "Ignoring %s=%s; using %s", LAYOUT_ASPECT_RATIO_ENV, aspect_ratio, cls.aspect_ratio
            )
            aspect_ratio = cls.aspect_ratio
        values = {"iterations": iterations, "aspect_ratio": aspect_ratio}
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class LayoutResult:
    """Final top-left positions of every node plus the overall extents."""

    positions: Mapping[Hashable, tuple[float, float]] = field(default_factory=dict)
    width: float = 0.0
    height: float = 0.0
    iterations_run: int = 0

    def to_payload(self) -> dict:
        return {
            "positions": {
                str(node_id): {"x": x, "y": y} for node_id, (x, y) in self.positions.items()
            },
            "width": self.width,
            "height": self.height,
        }


__all__ = ["LayoutConfig", "LayoutEdge", "LayoutNode", "LayoutResult"]
