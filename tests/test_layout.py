"""
Unit tests for layout algorithms and arrangement offsets.
"""

import math

import pytest

from drawcore import AddEdgeCommand, AddNodeCommand, Node, compute_layout
from drawcore.geometry import Bounds
from drawcore.layout import (
    alignment_offsets, circular_layout, concentric_layout,
    distribution_offsets, force_layout, grid_layout, tree_layout,
)


class TestGridLayout:

    def test_positions(self):
        positions = grid_layout(["a", "b", "c", "d"], columns=2)
        assert positions == {
            "a": (100, 100), "b": (300, 100),
            "c": (100, 250), "d": (300, 250),
        }

    def test_empty(self):
        assert grid_layout([]) == {}


class TestTreeLayout:

    def test_levels_follow_edges(self):
        positions = tree_layout(["root", "left", "right"], [("root", "left"), ("root", "right")])
        assert positions["root"][1] == 100
        assert positions["left"][1] == positions["right"][1] == 250
        assert positions["left"][0] != positions["right"][0]

    def test_self_loops_ignored(self):
        positions = tree_layout(["a"], [("a", "a")])
        assert positions == {"a": (100, 100)}

    def test_cycle_without_root(self):
        positions = tree_layout(["a", "b"], [("a", "b"), ("b", "a")])
        assert positions["a"][1] < positions["b"][1]

    def test_horizontal(self):
        positions = tree_layout(["a", "b"], [("a", "b")], orientation="horizontal")
        assert positions["b"][0] > positions["a"][0]


class TestRadialLayouts:

    def test_circle_equal_radius(self):
        positions = circular_layout(["a", "b", "c", "d"], center_x=0, center_y=0, radius=100)
        for x, y in positions.values():
            assert math.hypot(x, y) == pytest.approx(100)
        assert positions["a"][1] == pytest.approx(-100)

    def test_concentric_busiest_in_middle(self):
        edges = [("hub", "a"), ("hub", "b"), ("hub", "c")]
        positions = concentric_layout(["hub", "a", "b", "c"], edges, center_x=0, center_y=0)
        assert positions["hub"] == (0, 0)
        assert math.hypot(*positions["a"]) == pytest.approx(150)

    def test_force_is_deterministic_and_separates(self):
        node_ids = ["a", "b", "c"]
        edges = [("a", "b"), ("b", "c")]
        first = force_layout(node_ids, edges, iterations=20)
        second = force_layout(node_ids, edges, iterations=20)
        assert first == second
        ax, ay = first["a"]
        cx, cy = first["c"]
        assert math.hypot(ax - cx, ay - cy) > 50


class TestComputeLayout:

    def test_uses_document_graph(self, document, history):
        for node_id in ("a", "b"):
            history.execute(AddNodeCommand(document, Node(id=node_id)))
        history.execute(AddEdgeCommand.connect(document, "a", "b"))
        positions = compute_layout(document, "tree")
        assert positions["b"][1] > positions["a"][1]

    def test_unknown(self, document):
        with pytest.raises(ValueError):
            compute_layout(document, "spiral")


class TestArrangementOffsets:

    def test_alignment_right(self):
        offsets = alignment_offsets([Bounds(0, 0, 10, 10), Bounds(50, 0, 20, 10)], "right")
        assert offsets == [(60, 0), (0, 0)]

    def test_alignment_center(self):
        offsets = alignment_offsets([Bounds(0, 0, 10, 10), Bounds(90, 0, 10, 10)], "center")
        assert offsets == [(45, 0), (-45, 0)]

    def test_distribution_vertical(self):
        boxes = [Bounds(0, 0, 10, 10), Bounds(0, 15, 10, 10), Bounds(0, 90, 10, 10)]
        offsets = distribution_offsets(boxes, "vertical")
        assert offsets == [(0, 0), (0, 30), (0, 0)]

    def test_distribution_rejects_two(self):
        with pytest.raises(ValueError):
            distribution_offsets([Bounds(0, 0, 1, 1)] * 2)
