"""
Commands for diagram nodes and edges.

These keep the graph registry consistent across undo and redo:
- Adding an edge requires both endpoint nodes to be registered
- Deleting a node removes every attached edge first; the set of edges is
  captured when the command is built so undo restores exactly those
- Layouts move nodes and re-route their edges
"""

import logging
from typing import Callable, Mapping, Optional, Sequence, Union

from .commands import (
    AddShapeCommand, Command, DeleteShapeCommand,
    InvalidCommandError, _require_in_document, _shape_name,
)
from .document import Document
from .geometry import round3
from .models import AnyShape, Edge, EdgeDirection, EdgeLineType, Node

logger = logging.getLogger(__name__)


Positions = Mapping[str, tuple[float, float]]


def _endpoint_labels(document: Document, edge: Edge) -> tuple[str, str]:
    source = document.graph.get_node_shape(edge.source_node_id)
    target = document.graph.get_node_shape(edge.target_node_id)
    return (
        (source.label if source and source.label else edge.source_node_id),
        (target.label if target and target.label else edge.target_node_id),
    )


# --- Adding ---

class AddNodeCommand(AddShapeCommand):

    def __init__(self, document: Document, node: Node, index: Optional[int] = None):
        if not isinstance(node, Node):
            raise InvalidCommandError(f"Not a node: {node.type}")
        if document.graph.has_node(node.id):
            raise InvalidCommandError(f"Node already registered: {node.id}")
        super().__init__(document, node, index)


class AddEdgeCommand(AddShapeCommand):

    def __init__(self, document: Document, edge: Edge, index: Optional[int] = None):
        if not isinstance(edge, Edge):
            raise InvalidCommandError(f"Not an edge: {edge.type}")
        for node_id in (edge.source_node_id, edge.target_node_id):
            if not document.graph.has_node(node_id):
                raise InvalidCommandError(f"Edge endpoint not found: {node_id}")
        super().__init__(document, edge, index)

    @classmethod
    def connect(
        cls,
        document: Document,
        source_node_id: str,
        target_node_id: str,
        direction: Union[EdgeDirection, str] = EdgeDirection.NONE,
        **kwargs,
    ) -> "AddEdgeCommand":
        """Build the edge (offset and loop angle assigned) and the command that adds it."""
        for node_id in (source_node_id, target_node_id):
            if not document.graph.has_node(node_id):
                raise InvalidCommandError(f"Edge endpoint not found: {node_id}")
        edge = Edge.create(document.graph, source_node_id, target_node_id, direction, **kwargs)
        return cls(document, edge)

    def get_description(self) -> str:
        source, target = _endpoint_labels(self.document, self.shape)
        return f'Add edge "{source}" → "{target}"'


# --- Removing ---

class DeleteEdgeCommand(DeleteShapeCommand):

    def __init__(self, document: Document, edge: Edge):
        if not isinstance(edge, Edge):
            raise InvalidCommandError(f"Not an edge: {edge.type}")
        super().__init__(document, edge)

    def get_description(self) -> str:
        source, target = _endpoint_labels(self.document, self.shape)
        return f'Delete edge "{source}" → "{target}"'


class DeleteNodeCommand(Command):
    """
    Delete a node together with every edge attached to it.

    The attached edges and every z-order index are captured at construction.
    Undo re-inserts node and edges in ascending index order, which puts each
    one back in its original slot.
    """

    def __init__(self, document: Document, node: Node):
        if not isinstance(node, Node):
            raise InvalidCommandError(f"Not a node: {node.type}")
        _require_in_document(document, [node])
        self.document = document
        self.node = node
        self.edges: list[Edge] = []
        for edge_id in document.graph.get_edge_ids_for_node(node.id):
            edge = document.get_shape(edge_id)
            if isinstance(edge, Edge):
                self.edges.append(edge)
        self._slots: list[tuple[int, AnyShape]] = sorted(
            ((document.index_of(shape), shape) for shape in [node, *self.edges]),
            key=lambda slot: slot[0],
        )

    def execute(self):
        for edge in self.edges:
            self.document.remove_shape(edge)
        self.document.remove_shape(self.node)

    def undo(self):
        for index, shape in self._slots:
            self.document.add_shape(shape, index)

    def get_description(self) -> str:
        name = self.node.label or self.node.id
        if self.edges:
            return f'Delete node "{name}" and {len(self.edges)} edge(s)'
        return f'Delete node "{name}"'


class DeleteShapesCommand(Command):
    """
    Delete a mixed selection of shapes in one step.

    Every edge attached to a selected node joins the deletion, so an edge
    shared by two selected nodes (or also selected itself) is removed once.
    The full set and every z-order index are captured at construction;
    undo re-inserts in ascending index order like DeleteNodeCommand.
    """

    def __init__(self, document: Document, shapes: Sequence[AnyShape]):
        if not shapes:
            raise InvalidCommandError("Nothing to delete")
        _require_in_document(document, shapes)
        self.document = document
        self.shapes = list(shapes)

        doomed: dict[str, AnyShape] = {}
        for shape in self.shapes:
            doomed[shape.id] = shape
            if isinstance(shape, Node):
                for edge_id in document.graph.get_edge_ids_for_node(shape.id):
                    edge = document.get_shape(edge_id)
                    if isinstance(edge, Edge):
                        doomed[edge.id] = edge
        self._slots: list[tuple[int, AnyShape]] = sorted(
            ((document.index_of(shape), shape) for shape in doomed.values()),
            key=lambda slot: slot[0],
        )

    def execute(self):
        # Edges first so no node is ever removed while still connected
        for _, shape in self._slots:
            if isinstance(shape, Edge):
                self.document.remove_shape(shape)
        for _, shape in self._slots:
            if not isinstance(shape, Edge):
                self.document.remove_shape(shape)

    def undo(self):
        for index, shape in self._slots:
            self.document.add_shape(shape, index)

    def get_description(self) -> str:
        if len(self.shapes) == 1:
            return f"Delete {_shape_name(self.shapes[0])}"
        return f"Delete {len(self.shapes)} shapes"


def build_delete_command(document: Document, shapes: Sequence[AnyShape]) -> Command:
    """One undoable step deleting a mixed selection."""
    if len(shapes) == 1:
        shape = shapes[0]
        if isinstance(shape, Node):
            return DeleteNodeCommand(document, shape)
        if isinstance(shape, Edge):
            return DeleteEdgeCommand(document, shape)
        return DeleteShapeCommand(document, shape)
    return DeleteShapesCommand(document, shapes)


# --- Edge properties ---

class EdgeDirectionChangeCommand(Command):

    def __init__(self, document: Document, edge: Edge, direction: Union[EdgeDirection, str]):
        if not isinstance(edge, Edge):
            raise InvalidCommandError(f"Not an edge: {edge.type}")
        try:
            direction = EdgeDirection(direction).value
        except ValueError as e:
            raise InvalidCommandError(f"Invalid edge direction: {direction}") from e
        _require_in_document(document, [edge])
        self.document = document
        self.edge = edge
        self.before = edge.direction
        self.after = direction

    def execute(self):
        self.edge.set_direction(self.after)
        self.document.shape_changed(self.edge)

    def undo(self):
        self.edge.set_direction(self.before)
        self.document.shape_changed(self.edge)

    def get_description(self) -> str:
        source, target = _endpoint_labels(self.document, self.edge)
        return f'Change edge "{source}" → "{target}" direction to {self.after}'


class EdgeCurveAmountChangeCommand(Command):

    def __init__(self, document: Document, edge: Edge, amount: float):
        if not isinstance(edge, Edge):
            raise InvalidCommandError(f"Not an edge: {edge.type}")
        _require_in_document(document, [edge])
        self.document = document
        self.edge = edge
        self.before = edge.curve_amount
        self.after = amount

    def execute(self):
        self.edge.set_curve_amount(self.after)
        self.document.shape_changed(self.edge)

    def undo(self):
        self.edge.set_curve_amount(self.before)
        self.document.shape_changed(self.edge)

    def get_description(self) -> str:
        source, target = _endpoint_labels(self.document, self.edge)
        return f'Change edge "{source}" → "{target}" curve amount to {self.after:g}'


class EdgeLineTypeChangeCommand(Command):

    def __init__(self, document: Document, edge: Edge, line_type: Union[EdgeLineType, str]):
        try:
            line_type = EdgeLineType(line_type).value
        except ValueError as e:
            raise InvalidCommandError(f"Invalid line type: {line_type}") from e
        if edge.is_self_loop and line_type == EdgeLineType.STRAIGHT.value:
            raise InvalidCommandError("Self-loops cannot be straight")
        _require_in_document(document, [edge])
        self.document = document
        self.edge = edge
        self.before = edge.line_type
        self.after = line_type

    def execute(self):
        self.edge.set_line_type(self.after)
        self.document.shape_changed(self.edge)

    def undo(self):
        self.edge.set_line_type(self.before)
        self.document.shape_changed(self.edge)

    def get_description(self) -> str:
        return f"Change edge line type to {self.after}"


class EdgeLabelChangeCommand(Command):

    def __init__(self, document: Document, edge: Edge, label: str):
        if not isinstance(edge, Edge):
            raise InvalidCommandError(f"Not an edge: {edge.type}")
        _require_in_document(document, [edge])
        self.document = document
        self.edge = edge
        self.before = edge.label
        self.after = label

    def execute(self):
        self.edge.label = self.after
        self.document.shape_changed(self.edge)

    def undo(self):
        self.edge.label = self.before
        self.document.shape_changed(self.edge)

    def get_description(self) -> str:
        return f'Change edge label to "{self.after}"'


# --- Node properties ---

class NodeLabelChangeCommand(Command):
    """Change a node's label, font size or radii; attached edges re-route."""

    PROPERTIES = ("label", "font_size", "rx", "ry")

    def __init__(self, document: Document, node: Node, **changes):
        if not isinstance(node, Node):
            raise InvalidCommandError(f"Not a node: {node.type}")
        unknown = set(changes) - set(self.PROPERTIES)
        if unknown:
            raise InvalidCommandError(f"Unknown node properties: {sorted(unknown)}")
        for name in ("font_size", "rx", "ry"):
            if name in changes and changes[name] <= 0:
                raise InvalidCommandError(f"{name} must be positive")
        _require_in_document(document, [node])
        self.document = document
        self.node = node
        self.before = {name: getattr(node, name) for name in changes}
        self.after = {
            name: (value if name == "label" else round3(value))
            for name, value in changes.items()
        }

    def _apply(self, values: dict):
        for name, value in values.items():
            setattr(self.node, name, value)
        self.document.shape_changed(self.node)

    def execute(self):
        self._apply(self.after)

    def undo(self):
        self._apply(self.before)

    def get_description(self) -> str:
        if "label" in self.after:
            return f'Change node label to "{self.after["label"]}"'
        return f'Change node "{self.node.label or self.node.id}"'


# --- Layout ---

class ApplyLayoutCommand(Command):
    """
    Move nodes to new centre positions as one undoable step.

    `layout` is either a mapping node_id -> (cx, cy) or a callable that
    computes one from the document. A callable runs once, on first
    execute; redo re-applies the positions it produced.
    """

    def __init__(
        self,
        document: Document,
        layout: Union[Positions, Callable[[Document], Positions]],
        name: str = "layout",
    ):
        self.document = document
        self.name = name
        self._layout = layout
        self.before: dict[str, tuple[float, float]] = {
            node.id: (node.cx, node.cy) for node in document.get_nodes()
        }
        self.after: Optional[dict[str, tuple[float, float]]] = None
        if not callable(layout):
            self.after = self._resolve(layout)

    def _resolve(self, positions: Positions) -> dict[str, tuple[float, float]]:
        resolved = {}
        for node_id, (x, y) in positions.items():
            if node_id not in self.before:
                logger.warning("Layout position for unknown node %s ignored", node_id)
                continue
            resolved[node_id] = (round3(x), round3(y))
        return resolved

    def _apply(self, positions: Mapping[str, tuple[float, float]]):
        for node_id, (x, y) in positions.items():
            node = self.document.graph.get_node_shape(node_id)
            if node is None:
                continue
            node.cx, node.cy = x, y
            self.document.shape_changed(node)

    def execute(self):
        if self.after is None:
            self.after = self._resolve(self._layout(self.document))
        self._apply(self.after)

    def undo(self):
        self._apply({node_id: self.before[node_id] for node_id in self.after or {}})

    def get_description(self) -> str:
        return f"Apply {self.name}"
