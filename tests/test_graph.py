"""
Tests for the graph registry and edge routing.

Includes the parallel-edge fan-out sequence, self-loop angle assignment
and the two-node move scenario where edges must follow their nodes.
"""

import math

import pytest

from drawcore import AddEdgeCommand, GraphRegistry, MoveShapeCommand, Node
from drawcore.graph import parallel_offset, self_loop_angle
from drawcore.routing import connection_point, curved_route, route_edge, self_loop_route, straight_route
from drawcore.geometry import Point


class TestParallelOffsets:
    """Test the 0, +d, -d, +2d, ... sequence."""

    def test_sequence(self):
        assert [parallel_offset(i, 25) for i in range(5)] == [0, 25, -25, 50, -50]

    def test_four_edges_between_same_pair(self, two_nodes, history):
        offsets = []
        for _ in range(4):
            command = AddEdgeCommand.connect(two_nodes, "a", "b")
            history.execute(command)
            offsets.append(command.shape.curve_offset)
        assert offsets == [0, 25, -25, 50]
        assert len(set(offsets)) == 4

    def test_reverse_edges_share_the_bundle(self, two_nodes, history):
        """An edge drawn b -> a continues the a/b bundle in the pair's frame."""
        history.execute(AddEdgeCommand.connect(two_nodes, "a", "b"))
        reverse = AddEdgeCommand.connect(two_nodes, "b", "a")
        history.execute(reverse)
        assert reverse.shape.curve_offset == -25
        assert reverse.shape.line_type == "curve"

    def test_offsets_use_configured_step(self):
        graph = GraphRegistry()
        graph.config.parallel_edge_step = 10
        graph.register_node("a")
        graph.register_node("b")
        graph.register_edge("e1", "a", "b")
        assert graph.calculate_parallel_offset("a", "b") == 10


class TestSelfLoopAngles:

    def test_primary_then_diagonal(self):
        angles = [self_loop_angle(i) for i in range(8)]
        assert angles[:4] == [0, math.pi / 2, math.pi, 3 * math.pi / 2]
        assert angles[4] == pytest.approx(math.pi / 4)

    @pytest.mark.parametrize("index,expected", [
        (8, 4 * math.pi / 3),
        (10, 5 * math.pi / 3),
        (13, math.pi / 6),
    ])
    def test_overflow_uses_loop_count(self, index, expected):
        assert self_loop_angle(index) == pytest.approx(expected)

    def test_registry_assigns_next_angle(self, two_nodes, history):
        first = AddEdgeCommand.connect(two_nodes, "a", "a")
        history.execute(first)
        second = AddEdgeCommand.connect(two_nodes, "a", "a")
        history.execute(second)
        assert first.shape.is_self_loop
        assert first.shape.self_loop_angle == 0
        assert second.shape.self_loop_angle == pytest.approx(math.pi / 2)
        assert first.shape.curve_offset == 0


class TestGraphRegistry:
    """Test registry bookkeeping."""

    def test_unregister_node_does_not_cascade(self, caplog):
        graph = GraphRegistry()
        graph.register_node("a")
        graph.register_node("b")
        graph.register_edge("e1", "a", "b")
        graph.unregister_node("a")
        assert graph.has_edge("e1")
        assert graph.get_edge_ids_for_node("a") == ["e1"]
        assert "still attached" in caplog.text

    def test_edges_between_is_unordered(self):
        graph = GraphRegistry()
        for node_id in ("a", "b", "c"):
            graph.register_node(node_id)
        graph.register_edge("e1", "a", "b")
        graph.register_edge("e2", "b", "a")
        graph.register_edge("e3", "a", "c")
        graph.register_edge("e4", "a", "a")
        assert graph.get_edge_ids_between("a", "b") == ["e1", "e2"]
        assert graph.get_edge_ids_between("a", "a") == ["e4"]
        assert graph.get_edge_ids_for_node("a") == ["e1", "e2", "e3", "e4"]

    def test_reregister_edge_moves_adjacency(self):
        graph = GraphRegistry()
        for node_id in ("a", "b", "c"):
            graph.register_node(node_id)
        graph.register_edge("e1", "a", "b")
        graph.register_edge("e1", "a", "c")
        assert graph.get_edge_ids_for_node("b") == []
        assert graph.get_edge_connection("e1") == ("a", "c")
        assert graph.check_consistency() == []

    def test_set_shape_requires_registration(self):
        graph = GraphRegistry()
        with pytest.raises(ValueError):
            graph.set_node_shape("missing", Node())

    def test_update_edges_for_node_calls_back(self):
        graph = GraphRegistry()
        graph.register_node("a")
        graph.register_node("b")
        graph.register_edge("e1", "a", "b")
        refreshed = []
        graph.set_update_edge_callback(refreshed.append)
        graph.update_edges_for_node("b")
        assert refreshed == ["e1"]

    def test_consistency_detects_tampering(self):
        graph = GraphRegistry()
        graph.register_node("a")
        graph.register_node("b")
        graph.register_edge("e1", "a", "b")
        graph._edges_by_node["b"].discard("e1")
        assert len(graph.check_consistency()) == 1


class TestRouting:
    """Test route construction from node geometry."""

    def test_straight_route_between_boundaries(self, node_a, node_b):
        route = straight_route(node_a, node_b)
        assert route.kind == "straight"
        assert route.start == Point(20, 0)
        assert route.end.x == pytest.approx(80)
        assert route.end.y == pytest.approx(0, abs=1e-9)
        assert route.to_path_data() == "M 20 0 L 80 0"

    def test_curved_route_control_point(self, node_a, node_b):
        route = curved_route(node_a, node_b, 25)
        assert route.kind == "quadratic"
        control = route.points[1]
        assert control.x == pytest.approx(50)
        assert control.y == pytest.approx(25)
        # Endpoints are re-aimed at the control point
        assert route.start.y > 0
        assert route.start.distance_to(Point(0, 0)) == pytest.approx(20)

    def test_self_loop_endpoints_on_boundary(self, node_a):
        route = self_loop_route(node_a, 0.0)
        assert route.kind == "cubic"
        assert route.start.distance_to(Point(0, 0)) == pytest.approx(20)
        assert route.end.distance_to(Point(0, 0)) == pytest.approx(20)
        assert route.start.y < 0 < route.end.y

    def test_missing_endpoint(self, node_a):
        assert route_edge(node_a, None) is None

    def test_arrow_position(self, node_a, node_b):
        route = straight_route(node_a, node_b)
        tip, angle = route.arrow_position("forward")
        assert tip == route.end
        assert angle == pytest.approx(0)
        tip, angle = route.arrow_position("backward")
        assert tip == route.start
        assert abs(angle) == pytest.approx(math.pi)
        assert route.arrow_position("none") is None

    def test_edge_hit_uses_route(self, two_nodes, history):
        command = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(command)
        assert command.shape.hit_test(Point(50, 2))
        assert not command.shape.hit_test(Point(50, 20))


class TestMoveScenario:
    """Edges re-route when an endpoint node moves, and undo restores them."""

    def test_move_node_reroutes_both_edges(self, two_nodes, history, node_a, node_b):
        straight_cmd = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(straight_cmd)
        curved_cmd = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(curved_cmd)
        straight, curved = straight_cmd.shape, curved_cmd.shape
        assert straight.curve_offset == 0
        assert curved.curve_offset != 0

        paths_before = (straight.get_path_data(), curved.get_path_data())
        starts_before = (straight.get_route().start, curved.get_route().start)

        updated = []
        two_nodes.events.on("shape:updated", lambda payload: updated.append(payload["shape_id"]))
        history.execute(MoveShapeCommand(two_nodes, [node_a], 0, 50))

        assert straight.get_route().start != starts_before[0]
        assert curved.get_route().start != starts_before[1]
        expected_end = connection_point(node_b, Point(0, 50))
        assert straight.get_route().end == expected_end
        assert straight.id in updated and curved.id in updated

        history.undo()
        assert (straight.get_path_data(), curved.get_path_data()) == paths_before
