"""Deterministic initial placement for the force-directed layout."""
from __future__ import annotations

import math
import random
from typing import Hashable, Mapping, Sequence

from .model import LayoutNode


def node_rng(node_id: Hashable) -> random.Random:
    """Return a fresh generator seeded from ``node_id`` alone.

    ``random.Random`` seeds ``int``/``str``/``bytes`` deterministically across
    processes; any other id type is seeded from its ``repr``.
    """

    if isinstance(node_id, (int, str, bytes)) and not isinstance(node_id, bool):
        return random.Random(node_id)
    return random.Random(repr(node_id))


class Particle:
    """Mutable simulation state for one :class:`LayoutNode`."""

    __slots__ = ("node", "x", "y", "vx", "vy")

    def __init__(self, node: LayoutNode, x: float = 0.0, y: float = 0.0) -> None:
        self.node = node
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Particle(id={self.node.id!r}, x={self.x:.1f}, y={self.y:.1f})"


def seed_particles(
    nodes: Sequence[LayoutNode],
    parents_of: Mapping[Hashable, Sequence[Hashable]],
    aspect_ratio: float,
) -> list[Particle]:
    """Create particles with their starting positions.

    Roots sit on an ellipse whose radius grows with the number of roots (a lone
    root sits at the origin). Non-roots are placed parents-first near the
    centroid of their already placed parents; without one they fall back to
    their cluster root, and finally to the origin.
    """

    particles = [Particle(node) for node in nodes]
    by_id = {particle.node.id: particle for particle in particles}

    roots = [particle for particle in particles if particle.node.is_root]
    if len(roots) == 1:
        roots[0].x = roots[0].y = 0.0
    elif roots:
        radius = 150.0 + len(roots) * 40.0
        for index, particle in enumerate(roots):
            angle = (2 * math.pi * index) / len(roots)
            particle.x = radius * aspect_ratio * math.cos(angle)
            particle.y = radius * math.sin(angle)

    placed = {particle.node.id for particle in roots}
    # sorted() is stable, so equal depths keep their input order.
    pending = sorted(
        (particle for particle in particles if not particle.node.is_root),
        key=lambda particle: particle.node.depth,
    )
    for particle in pending:
        _place(particle, by_id, placed, parents_of)
        placed.add(particle.node.id)
    return particles


def _place(
    particle: Particle,
    by_id: Mapping[Hashable, Particle],
    placed: set,
    parents_of: Mapping[Hashable, Sequence[Hashable]],
) -> None:
    rng = node_rng(particle.node.id)
    parents = [by_id[pid] for pid in parents_of.get(particle.node.id, ()) if pid in placed]
    if parents:
        cx = sum(parent.x for parent in parents) / len(parents)
        cy = sum(parent.y for parent in parents) / len(parents)
        particle.x = cx + (rng.random() - 0.5) * 150
        particle.y = cy + (rng.random() - 0.5) * 150
        return

    cluster_root = by_id.get(particle.node.cluster) if particle.node.cluster is not None else None
    if cluster_root is not None and cluster_root.node.id in placed:
        particle.x = cluster_root.x + (rng.random() - 0.5) * 200
        particle.y = cluster_root.y + (rng.random() - 0.5) * 200
    else:
        particle.x = (rng.random() - 0.5) * 300
        particle.y = (rng.random() - 0.5) * 300


__all__ = ["Particle", "node_rng", "seed_particles"]
