"""Tests for :mod:`taskweave.layout.seed`."""

from __future__ import annotations

import pytest

from taskweave.layout.model import LayoutNode
from taskweave.layout.seed import node_rng, seed_particles


def root(node_id: int, **kwargs) -> LayoutNode:
    return LayoutNode(id=node_id, is_root=True, width=100, height=40, cluster=node_id, **kwargs)


def child(node_id: int, cluster: int, depth: int = 1) -> LayoutNode:
    return LayoutNode(id=node_id, is_root=False, width=80, height=30, depth=depth, cluster=cluster)


def test_node_rng_depends_only_on_the_id():
    assert node_rng(5).random() == node_rng(5).random()
    assert node_rng("a").random() != node_rng("b").random()
    assert node_rng((1, 2)).random() == node_rng((1, 2)).random()


def test_single_root_starts_at_origin():
    (particle,) = seed_particles([root(1)], {}, aspect_ratio=1.4)
    assert (particle.x, particle.y) == (0.0, 0.0)


def test_roots_are_spread_on_an_aspect_scaled_ellipse():
    particles = seed_particles([root(1), root(2)], {}, aspect_ratio=1.5)

    radius = 150.0 + 2 * 40.0
    assert particles[0].x == pytest.approx(radius * 1.5)
    assert particles[0].y == pytest.approx(0.0)
    assert particles[1].x == pytest.approx(-radius * 1.5)


def test_children_start_near_their_parents_centroid():
    nodes = [root(1), root(2), child(3, cluster=1)]
    particles = seed_particles(nodes, {3: [1, 2]}, aspect_ratio=1.0)
    by_id = {particle.node.id: particle for particle in particles}

    cx = (by_id[1].x + by_id[2].x) / 2
    cy = (by_id[1].y + by_id[2].y) / 2
    assert abs(by_id[3].x - cx) <= 75
    assert abs(by_id[3].y - cy) <= 75


def test_parents_are_placed_before_deeper_children():
    # The grandchild is listed first but must still start near its parent.
    nodes = [child(4, cluster=1, depth=2), root(1), child(3, cluster=1)]
    particles = seed_particles(nodes, {3: [1], 4: [3]}, aspect_ratio=1.0)
    by_id = {particle.node.id: particle for particle in particles}

    assert abs(by_id[4].x - by_id[3].x) <= 75
    assert abs(by_id[4].y - by_id[3].y) <= 75


def test_child_without_parents_falls_back_to_cluster_root():
    nodes = [root(1), root(2), child(3, cluster=2)]
    particles = seed_particles(nodes, {}, aspect_ratio=1.0)
    by_id = {particle.node.id: particle for particle in particles}

    assert abs(by_id[3].x - by_id[2].x) <= 100
    assert abs(by_id[3].y - by_id[2].y) <= 100
