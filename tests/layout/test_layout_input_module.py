"""Tests for :mod:`taskweave.layout.snapshot`."""

from __future__ import annotations

import pytest

from taskweave.graph.store import GraphStore
from taskweave.layout.snapshot import NodeSizing, build_layout_input, viewport_aspect_ratio


def build_store() -> GraphStore:
    store = GraphStore()
    a = store.create_task("A").id
    b = store.create_task("B", parent_ids=[a]).id
    store.create_task("C", parent_ids=[b])
    d = store.create_task("D").id
    store.create_task("E", parent_ids=[d, b])
    store.create_task("Loose")
    done = store.create_task("Done", parent_ids=[a]).id
    store.complete_task(done)
    return store


def test_build_layout_input_skips_completed_and_unrelated_tasks():
    layout_input = build_layout_input(build_store().snapshot())

    assert sorted(layout_input.nodes) == [1, 2, 3, 4, 5]
    assert layout_input.unrelated_ids == (6,)
    assert [(edge.source_id, edge.dest_id) for edge in layout_input.edges] == [
        (1, 2),
        (2, 3),
        (2, 5),
        (4, 5),
    ]


def test_build_layout_input_includes_unrelated_on_request():
    layout_input = build_layout_input(build_store().snapshot(), include_unrelated=True)

    loose = layout_input.nodes[6]
    assert loose.is_root and loose.cluster == 6
    assert layout_input.unrelated_ids == (6,)


def test_build_layout_input_assigns_hierarchy_and_sizes():
    sizing = NodeSizing()
    nodes = build_layout_input(build_store().snapshot(), sizing).nodes

    assert nodes[1].is_root and nodes[4].is_root
    assert nodes[3].depth == 2 and nodes[3].cluster == 1
    assert nodes[5].affinity == frozenset({1, 4})
    assert (nodes[1].width, nodes[1].height) == sizing.size_for(is_root=True, depth=0)
    assert nodes[3].width < nodes[2].width


def test_depth_scale_shrinks_and_clamps():
    assert NodeSizing.depth_scale(0) == 1.0
    assert NodeSizing.depth_scale(1) == 1.0
    assert NodeSizing.depth_scale(3) == pytest.approx(0.86)
    assert NodeSizing.depth_scale(20) == pytest.approx(0.7)


def test_size_for_adds_horizontal_padding():
    assert NodeSizing().size_for(is_root=True, depth=0) == (184.0, 56.0)
    assert NodeSizing().size_for(is_root=False, depth=1) == (144.0, 42.0)


def test_for_viewport_scales_between_bounds():
    assert NodeSizing.for_viewport(400).root_width == pytest.approx(112.0)
    assert NodeSizing.for_viewport(2000) == NodeSizing()


def test_viewport_aspect_ratio_is_clamped():
    assert viewport_aspect_ratio(1200, 800) == pytest.approx(1.5)
    assert viewport_aspect_ratio(1000, 100) == 2.0
    assert viewport_aspect_ratio(400, 800) == 0.8
    assert viewport_aspect_ratio(100, 0) == 2.0
