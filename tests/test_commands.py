"""
Tests for shape and graph commands.

Every command must undo exactly: after execute + undo the document's plain
data is identical to what it was before.
"""

import pytest

from drawcore import (
    AddEdgeCommand, AddNodeCommand, AddPathPointCommand, AddShapeCommand,
    ApplyClassCommand, ApplyLayoutCommand, CompositeCommand,
    DeleteEdgeCommand, DeleteNodeCommand, DeletePathPointCommand,
    DeleteShapeCommand, DeleteShapesCommand, DeleteVertexCommand,
    EdgeCurveAmountChangeCommand, EdgeDirectionChangeCommand,
    EdgeLabelChangeCommand, EdgeLineTypeChangeCommand, Group,
    InsertVertexCommand, InvalidCommandError, MoveShapeCommand,
    MoveVertexCommand, Node, NodeLabelChangeCommand, Path, Polygon, Polyline,
    Rectangle, ResizeShapeCommand, RotateShapeCommand, StyleChangeCommand, Text,
    TextPropertyChangeCommand, build_delete_command,
)
from drawcore.events import STYLE_CHANGED
from drawcore.geometry import Bounds, Point


def snapshot(document):
    return document.to_json_dict()


def assert_undo_exact(document, history, command):
    """Execute, undo and redo a command, checking the document each time."""
    before = snapshot(document)
    history.execute(command)
    after = snapshot(document)
    history.undo()
    assert snapshot(document) == before
    history.redo()
    assert snapshot(document) == after


class TestShapeCommands:
    """Test add, delete and geometry commands."""

    def test_add_and_delete(self, document, history):
        rect = Rectangle(x=1, y=2, width=3, height=4)
        assert_undo_exact(document, history, AddShapeCommand(document, rect))
        assert_undo_exact(document, history, DeleteShapeCommand(document, rect))
        assert rect not in document

    def test_add_rejects_duplicate(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            AddShapeCommand(document, rect)

    def test_delete_restores_z_order(self, document, history, three_rectangles):
        middle = three_rectangles[1]
        history.execute(DeleteShapeCommand(document, middle))
        history.undo()
        assert document.index_of(middle) == 1

    def test_move(self, document, history, three_rectangles):
        assert_undo_exact(document, history, MoveShapeCommand(document, three_rectangles, 12.5, -3))
        assert three_rectangles[0].x == 12.5

    def test_move_on_rounding_tie_undoes_exactly(self, document, history):
        rect = Rectangle(x=0, y=0, width=10, height=10)
        document.add_shape(rect)
        history.execute(MoveShapeCommand(document, [rect], 0.0005, -0.0005))
        moved = (rect.x, rect.y)
        for _ in range(5):
            history.undo()
            assert (rect.x, rect.y) == (0, 0)
            history.redo()
            assert (rect.x, rect.y) == moved

    def test_add_rejects_group_holding_graph_shapes(self, document):
        group = Group(children=[Node(id="n1"), Rectangle()])
        with pytest.raises(InvalidCommandError):
            AddShapeCommand(document, group)
        with pytest.raises(ValueError):
            document.add_shape(group)
        assert len(document) == 0
        assert not document.graph.has_node("n1")

    def test_resize_rounds_after_state(self, document, history):
        rect = Rectangle(x=0, y=0, width=10, height=10)
        document.add_shape(rect)
        before = rect.capture_state()
        after = {**before, "width": 50.12345}
        assert_undo_exact(document, history, ResizeShapeCommand(document, rect, before, after))
        assert rect.width == 50.123

    def test_resize_text_drops_measured_bounds(self, document, history):
        text = Text(x=0, y=0, content="ab", font_size=10)
        document.add_shape(text)
        text.set_measured_bounds(Bounds(0, 0, 500, 500))
        before = text.capture_state()
        history.execute(ResizeShapeCommand(document, text, before, {**before, "font_size": 20}))
        assert text.get_base_bounds().width == pytest.approx(24)
        history.undo()
        assert text.get_base_bounds().width == pytest.approx(12)

    def test_resize_rejects_foreign_fields(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            ResizeShapeCommand(document, rect, {"cx": 0}, {"cx": 1})

    def test_rotate(self, document, history):
        rect = Rectangle(width=10, height=10, rotation=30)
        document.add_shape(rect)
        assert_undo_exact(document, history, RotateShapeCommand(document, rect, -90))
        assert rect.rotation == 270

    def test_rotate_rejects_edges(self, two_nodes, history):
        command = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(command)
        with pytest.raises(InvalidCommandError):
            RotateShapeCommand(two_nodes, command.shape, 45)

    def test_shape_outside_document(self, document):
        with pytest.raises(InvalidCommandError):
            MoveShapeCommand(document, [Rectangle()], 1, 1)


class TestStyleCommands:

    def test_style_change(self, document, history, events):
        rect = Rectangle(width=10, height=10)
        document.add_shape(rect)
        changed = []
        events.on(STYLE_CHANGED, changed.append)
        assert_undo_exact(document, history, StyleChangeCommand(document, [rect], {"fill": "#ff0000"}))
        assert rect.style.fill == "#ff0000"
        assert changed

    def test_unknown_property(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            StyleChangeCommand(document, [rect], {"colour": "red"})

    def test_invalid_value(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            StyleChangeCommand(document, [rect], {"opacity": 2})

    def test_apply_class(self, document, history, events):
        rect = Rectangle(width=10, height=10, class_name="plain")
        document.add_shape(rect)
        changed = []
        events.on(STYLE_CHANGED, changed.append)
        command = ApplyClassCommand(document, [rect], "warning", {"stroke": "#ff9900"})
        assert_undo_exact(document, history, command)
        assert (rect.class_name, rect.style.stroke) == ("warning", "#ff9900")
        assert rect.render()["attrs"]["class"] == "warning"
        assert changed

    def test_clear_class(self, document, history):
        rect = Rectangle(class_name="warning")
        document.add_shape(rect)
        assert_undo_exact(document, history, ApplyClassCommand(document, [rect], None))
        assert rect.class_name is None
        history.undo()
        assert rect.class_name == "warning"

    def test_apply_class_rejects_unknown_style(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            ApplyClassCommand(document, [rect], "warning", {"colour": "red"})

    def test_text_properties(self, document, history):
        text = Text(content="hello")
        document.add_shape(text)
        assert_undo_exact(
            document, history,
            TextPropertyChangeCommand(document, text, content="bye", font_size=20),
        )
        assert (text.content, text.font_size) == ("bye", 20)

    def test_text_rejects_unknown(self, document):
        text = Text()
        document.add_shape(text)
        with pytest.raises(InvalidCommandError):
            TextPropertyChangeCommand(document, text, colour="red")


class TestGraphCommands:
    """Test node and edge commands, including cascading delete."""

    def test_add_node_registers(self, document, history):
        node = Node(id="n1")
        history.execute(AddNodeCommand(document, node))
        assert document.graph.has_node("n1")
        history.undo()
        assert not document.graph.has_node("n1")

    def test_edge_requires_endpoints(self, two_nodes):
        with pytest.raises(InvalidCommandError):
            AddEdgeCommand.connect(two_nodes, "a", "missing")

    def test_delete_node_cascades(self, two_nodes, history, node_a):
        commands = [
            AddEdgeCommand.connect(two_nodes, "a", "b", "forward"),
            None,
            None,
        ]
        history.execute(commands[0])
        commands[1] = AddEdgeCommand.connect(two_nodes, "b", "a")
        history.execute(commands[1])
        commands[2] = AddEdgeCommand.connect(two_nodes, "a", "a")
        history.execute(commands[2])
        edges = [c.shape for c in commands]
        fields = [
            (e.source_node_id, e.target_node_id, e.direction, e.curve_offset, e.is_self_loop)
            for e in edges
        ]
        before = snapshot(two_nodes)

        delete = DeleteNodeCommand(two_nodes, node_a)
        assert len(delete.edges) == 3
        history.execute(delete)
        assert len(two_nodes) == 1
        assert two_nodes.graph.get_all_edge_ids() == []
        assert not two_nodes.graph.has_node("a")
        assert two_nodes.graph.check_consistency() == []

        history.undo()
        assert snapshot(two_nodes) == before
        assert [
            (e.source_node_id, e.target_node_id, e.direction, e.curve_offset, e.is_self_loop)
            for e in edges
        ] == fields
        assert sorted(two_nodes.graph.get_edge_ids_for_node("a")) == sorted(e.id for e in edges)
        assert all(e.get_path_data() for e in edges)

    def test_plain_delete_refuses_connected_node(self, two_nodes, history, node_a):
        history.execute(AddEdgeCommand.connect(two_nodes, "a", "b"))
        with pytest.raises(InvalidCommandError):
            DeleteShapeCommand(two_nodes, node_a)

    def test_delete_edge(self, two_nodes, history):
        command = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(command)
        assert_undo_exact(two_nodes, history, DeleteEdgeCommand(two_nodes, command.shape))

    def test_delete_selection_with_shared_edge(self, two_nodes, history, node_a, node_b):
        """Deleting both endpoints and their edge removes the edge once."""
        command = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(command)
        rect = Rectangle(width=5, height=5)
        two_nodes.add_shape(rect)
        before = snapshot(two_nodes)

        history.execute(build_delete_command(two_nodes, [command.shape, node_a, node_b, rect]))
        assert len(two_nodes) == 0
        history.undo()
        assert snapshot(two_nodes) == before
        history.redo()
        assert len(two_nodes) == 0

    def test_delete_selection_takes_attached_edges(self, two_nodes, history, node_a, node_b):
        """Edges to unselected nodes go too and return to their old slots."""
        history.execute(AddNodeCommand(two_nodes, Node(id="c", cx=0, cy=100)))
        for source, target in (("a", "b"), ("a", "c"), ("b", "c")):
            history.execute(AddEdgeCommand.connect(two_nodes, source, target))
        before = snapshot(two_nodes)

        command = build_delete_command(two_nodes, [node_a, node_b])
        assert isinstance(command, DeleteShapesCommand)
        history.execute(command)
        assert [s.id for s in two_nodes] == ["c"]
        assert two_nodes.graph.get_all_edge_ids() == []
        assert two_nodes.graph.check_consistency() == []

        history.undo()
        assert snapshot(two_nodes) == before
        history.redo()
        assert len(two_nodes) == 1

    def test_single_node_delete_cascades(self, two_nodes, history, node_a):
        history.execute(AddEdgeCommand.connect(two_nodes, "a", "b"))
        command = build_delete_command(two_nodes, [node_a])
        assert isinstance(command, DeleteNodeCommand)
        assert len(command.edges) == 1

    def test_edge_property_commands(self, two_nodes, history):
        command = AddEdgeCommand.connect(two_nodes, "a", "b")
        history.execute(command)
        edge = command.shape
        assert_undo_exact(two_nodes, history, EdgeDirectionChangeCommand(two_nodes, edge, "backward"))
        assert_undo_exact(two_nodes, history, EdgeLabelChangeCommand(two_nodes, edge, "uses"))
        assert_undo_exact(two_nodes, history, EdgeLineTypeChangeCommand(two_nodes, edge, "curve"))
        assert_undo_exact(two_nodes, history, EdgeCurveAmountChangeCommand(two_nodes, edge, 40))
        assert edge.effective_offset == 40
        assert " Q " in edge.get_path_data()

    def test_invalid_edge_changes(self, two_nodes, history):
        loop = AddEdgeCommand.connect(two_nodes, "a", "a")
        history.execute(loop)
        with pytest.raises(InvalidCommandError):
            EdgeLineTypeChangeCommand(two_nodes, loop.shape, "straight")
        with pytest.raises(InvalidCommandError):
            EdgeDirectionChangeCommand(two_nodes, loop.shape, "up")

    def test_node_label_and_radius(self, two_nodes, history, node_a):
        assert_undo_exact(two_nodes, history, NodeLabelChangeCommand(two_nodes, node_a, label="Start", rx=40))
        assert (node_a.label, node_a.rx) == ("Start", 40)
        with pytest.raises(InvalidCommandError):
            NodeLabelChangeCommand(two_nodes, node_a, ry=0)


class TestApplyLayout:

    def test_mapping(self, two_nodes, history, node_a, caplog):
        layout = ApplyLayoutCommand(two_nodes, {"a": (10.00049, 20), "ghost": (0, 0)})
        assert "ghost" in caplog.text
        assert_undo_exact(two_nodes, history, layout)
        assert (node_a.cx, node_a.cy) == (10.0, 20)

    def test_callable_runs_once(self, two_nodes, history, node_b):
        calls = []

        def compute(document):
            calls.append(document)
            return {"b": (0, 100)}

        history.execute(ApplyLayoutCommand(two_nodes, compute, name="custom"))
        history.undo()
        assert (node_b.cx, node_b.cy) == (100, 0)
        history.redo()
        assert (node_b.cx, node_b.cy) == (0, 100)
        assert len(calls) == 1
        assert history.undo_description == "Apply custom"


class TestCompositeCommand:

    def test_undo_in_reverse(self, document, history):
        rect = Rectangle(width=10, height=10)
        composite = CompositeCommand([
            AddShapeCommand(document, rect),
            MoveShapeCommand(document, [], 0, 0),
        ], "Add and nudge")
        assert_undo_exact(document, history, composite)
        assert composite.get_description() == "Add and nudge"


class TestVertexCommands:
    """Test polygon/polyline vertex edits and path point edits."""

    @pytest.fixture
    def triangle(self, document):
        shape = Polygon(points=[Point(0, 0), Point(10, 0), Point(0, 10)])
        document.add_shape(shape)
        return shape

    def test_move_vertex(self, document, history, triangle):
        assert_undo_exact(document, history, MoveVertexCommand(document, triangle, 1, Point(20.00049, 5)))
        assert triangle.points[1] == Point(20, 5)

    def test_insert_and_delete_vertex(self, document, history, triangle):
        assert_undo_exact(document, history, InsertVertexCommand(document, triangle, Point(5, 5), 1))
        assert triangle.points[1] == Point(5, 5)
        assert_undo_exact(document, history, DeleteVertexCommand(document, triangle, 1))
        assert len(triangle.points) == 3

    def test_append_vertex_to_polyline(self, document, history):
        line = Polyline(points=[Point(0, 0), Point(10, 0)])
        document.add_shape(line)
        assert_undo_exact(document, history, InsertVertexCommand(document, line, Point(10, 10)))
        assert line.points[-1] == Point(10, 10)

    def test_vertex_limits(self, document, triangle):
        with pytest.raises(InvalidCommandError):
            DeleteVertexCommand(document, triangle, 0)
        with pytest.raises(InvalidCommandError):
            MoveVertexCommand(document, triangle, 3, Point(0, 0))
        with pytest.raises(InvalidCommandError):
            InsertVertexCommand(document, triangle, Point(0, 0), 5)

    def test_vertex_commands_need_point_shapes(self, document):
        rect = Rectangle()
        document.add_shape(rect)
        with pytest.raises(InvalidCommandError):
            InsertVertexCommand(document, rect, Point(0, 0))

    def test_add_path_point_keeps_curve_outline(self, document, history):
        path = Path.from_path_data("M 0 0 C 0 100 100 100 100 0")
        document.add_shape(path)
        assert_undo_exact(document, history, AddPathPointCommand(document, path, 1))
        assert path.to_path_data() == "M 0 0 C 0 50 25 75 50 75 C 75 75 100 50 100 0"

    def test_add_path_point_on_line_at_point(self, document, history):
        path = Path.from_path_data("M 0 0 L 100 0")
        document.add_shape(path)
        assert_undo_exact(document, history, AddPathPointCommand(document, path, 1, point=Point(30, 10)))
        assert path.to_path_data() == "M 0 0 L 30 10 L 100 0"

    def test_delete_path_point(self, document, history):
        path = Path.from_path_data("M 0 0 L 10 0 L 10 10 Z")
        document.add_shape(path)
        assert_undo_exact(document, history, DeletePathPointCommand(document, path, 1))
        assert path.to_path_data() == "M 0 0 L 10 10 Z"
        with pytest.raises(InvalidCommandError):
            DeletePathPointCommand(document, path, 2)
        with pytest.raises(InvalidCommandError):
            DeletePathPointCommand(document, path, 0)
