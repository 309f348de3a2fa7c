"""Force-directed graph layout.

The simulation is a loosely "simulated annealing" relaxation: every iteration
accumulates pairwise repulsion, edge springs, cluster cohesion and centre
gravity into each node's velocity, clamps the velocity to a temperature that
shrinks linearly to zero, and advances the position once. Repulsion is
``O(n²)`` per iteration, which limits practical use to a few hundred nodes.

Given identical input the output is identical: initial positions and the
coincident-centre jitter are seeded from node ids only.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import math
from typing import Callable, Hashable, Iterable, Mapping, Optional, Sequence, Union

from .model import LayoutConfig, LayoutEdge, LayoutNode, LayoutResult
from .seed import Particle, node_rng, seed_particles

LOGGER = logging.getLogger(__name__)

NodeInput = Union[Mapping[Hashable, LayoutNode], Iterable[LayoutNode]]
StopHook = Callable[[int], bool]


def run_layout(
    nodes: NodeInput,
    edges: Iterable[LayoutEdge] = (),
    config: Optional[LayoutConfig] = None,
    *,
    should_stop: Optional[StopHook] = None,
) -> LayoutResult:
    """Compute top-left positions for ``nodes``.

    ``edges`` whose endpoints are not both present are ignored. ``should_stop``
    is called with the iteration index before each iteration; returning
    ``True`` ends the simulation early (normalisation still runs).
    """

    config = config or LayoutConfig()
    node_list = list(nodes.values() if isinstance(nodes, Mapping) else nodes)
    if not node_list:
        return LayoutResult()
    if len(node_list) == 1:
        node = node_list[0]
        return LayoutResult(positions={node.id: (0.0, 0.0)}, width=node.width, height=node.height)

    ids = {node.id for node in node_list}
    live_edges = [edge for edge in edges if edge.source_id in ids and edge.dest_id in ids]
    parents_of: dict[Hashable, list[Hashable]] = {}
    for edge in live_edges:
        parents_of.setdefault(edge.dest_id, []).append(edge.source_id)

    particles = seed_particles(node_list, parents_of, config.aspect_ratio)
    by_id = {particle.node.id: particle for particle in particles}
    spring_pairs = [(by_id[edge.source_id], by_id[edge.dest_id]) for edge in live_edges]
    parent_particles = {
        child: [by_id[parent] for parent in parents] for child, parents in parents_of.items()
    }

    iterations_run = 0
    for iteration in range(config.iterations):
        if should_stop is not None and should_stop(iteration):
            LOGGER.debug("Layout stopped early at iteration %d", iteration)
            break
        temperature = config.start_temperature * (1.0 - iteration / config.iterations)
        _step(particles, spring_pairs, parent_particles, config, temperature)
        iterations_run += 1

    LOGGER.debug("Layout of %d nodes ran %d iterations", len(particles), iterations_run)
    return _normalise(particles, iterations_run)


async def run_layout_async(
    nodes: NodeInput,
    edges: Iterable[LayoutEdge] = (),
    config: Optional[LayoutConfig] = None,
    *,
    should_stop: Optional[StopHook] = None,
) -> LayoutResult:
    """Run :func:`run_layout` in a worker thread."""

    node_list = list(nodes.values() if isinstance(nodes, Mapping) else nodes)
    call = functools.partial(run_layout, node_list, list(edges), config, should_stop=should_stop)
    return await asyncio.to_thread(call)


def _step(
    particles: Sequence[Particle],
    spring_pairs: Sequence[tuple[Particle, Particle]],
    parent_particles: Mapping[Hashable, Sequence[Particle]],
    config: LayoutConfig,
    temperature: float,
) -> None:
    for particle in particles:
        particle.vx = 0.0
        particle.vy = 0.0

    _apply_repulsion(particles, config)
    _apply_springs(spring_pairs, config)
    _apply_cohesion(particles, parent_particles, config)

    for particle in particles:
        gravity = config.root_gravity if particle.node.is_root else config.non_root_gravity
        particle.vx -= particle.x * gravity
        particle.vy -= particle.y * gravity

    for particle in particles:
        speed = math.hypot(particle.vx, particle.vy)
        if speed > temperature and speed > 0:
            particle.vx = particle.vx / speed * temperature
            particle.vy = particle.vy / speed * temperature
        particle.x += particle.vx
        particle.y += particle.vy


def _apply_repulsion(particles: Sequence[Particle], config: LayoutConfig) -> None:
    """Size-aware repulsion between every pair of bounding boxes."""

    count = len(particles)
    for i in range(count):
        a = particles[i]
        a_node = a.node
        a_cx = a.x + a_node.width / 2
        a_cy = a.y + a_node.height / 2
        for j in range(i + 1, count):
            b = particles[j]
            b_node = b.node
            dx = a_cx - (b.x + b_node.width / 2)
            dy = a_cy - (b.y + b_node.height / 2)
            distance = math.hypot(dx, dy)
            if distance < 1.0:
                dx = node_rng(a_node.id).uniform(-5.0, 5.0)
                dy = node_rng(b_node.id).uniform(-5.0, 5.0)
                distance = max(math.hypot(dx, dy), 1.0)

            min_sep_x = (a_node.width + b_node.width) / 2 + 20
            min_sep_y = (a_node.height + b_node.height) / 2 + 15
            min_sep = math.hypot(min_sep_x, min_sep_y)
            # Overlapping boxes clamp to a small gap, producing a strong push.
            gap = max(distance - min_sep + 60, 5.0)

            multiplier = config.cluster_repulsion_multiplier if _separate_clusters(a_node, b_node) else 1.0
            force = config.repulsion_strength * multiplier / (gap * gap)
            fx = dx / distance * force
            fy = dy / distance * force
            a.vx += fx
            a.vy += fy
            b.vx -= fx
            b.vy -= fy


def _separate_clusters(a: LayoutNode, b: LayoutNode) -> bool:
    if a.cluster is None or b.cluster is None or a.cluster == b.cluster:
        return False
    # Multi-parent nodes may settle between the clusters they belong to.
    return b.cluster not in a.affinity and a.cluster not in b.affinity


def _apply_springs(spring_pairs: Sequence[tuple[Particle, Particle]], config: LayoutConfig) -> None:
    """Hookean springs pulling each edge toward ``ideal_edge_length``."""

    for a, b in spring_pairs:
        dx = b.x - a.x
        dy = b.y - a.y
        distance = max(math.hypot(dx, dy), 1.0)
        force = config.attraction_strength * (distance - config.ideal_edge_length)
        fx = dx / distance * force
        fy = dy / distance * force
        a.vx += fx
        a.vy += fy
        b.vx -= fx
        b.vy -= fy


def _apply_cohesion(
    particles: Sequence[Particle],
    parent_particles: Mapping[Hashable, Sequence[Particle]],
    config: LayoutConfig,
) -> None:
    """Pull roots to their cluster centroid and other nodes to their parents' centroid."""

    sums: dict[Hashable, list[float]] = {}
    for particle in particles:
        cluster = particle.node.cluster
        if cluster is None:
            continue
        bucket = sums.setdefault(cluster, [0.0, 0.0, 0])
        bucket[0] += particle.x
        bucket[1] += particle.y
        bucket[2] += 1

    for particle in particles:
        node = particle.node
        if node.is_root:
            if node.cluster is None:
                continue
            sum_x, sum_y, count = sums[node.cluster]
            if count > 1:
                particle.vx += (sum_x / count - particle.x) * config.root_cohesion
                particle.vy += (sum_y / count - particle.y) * config.root_cohesion
            continue
        parents = parent_particles.get(node.id)
        if not parents:
            continue
        px = sum(parent.x for parent in parents) / len(parents)
        py = sum(parent.y for parent in parents) / len(parents)
        particle.vx += (px - particle.x) * config.parent_cohesion
        particle.vy += (py - particle.y) * config.parent_cohesion


def _normalise(particles: Sequence[Particle], iterations_run: int) -> LayoutResult:
    min_x = min(particle.x for particle in particles)
    min_y = min(particle.y for particle in particles)
    max_x = max(particle.x + particle.node.width for particle in particles)
    max_y = max(particle.y + particle.node.height for particle in particles)
    positions = {
        particle.node.id: (particle.x - min_x, particle.y - min_y) for particle in particles
    }
    return LayoutResult(
        positions=positions,
        width=max_x - min_x,
        height=max_y - min_y,
        iterations_run=iterations_run,
    )


__all__ = ["run_layout", "run_layout_async"]
