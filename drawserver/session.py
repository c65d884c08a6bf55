"""
Editor Session - one document, its history, and change notification.

This module implements:
- Single document state (one drawing open at a time)
- Command-based undo/redo through drawcore.History
- Change callbacks for real-time sync (websocket broadcast)
- Request-level helpers that build and run drawcore commands

Every mutating helper goes through History.execute(), so each HTTP call is
exactly one undoable step.
"""

import logging
from typing import Any, Callable, Optional

from drawcore import (
    AddEdgeCommand, AddNodeCommand, AddPathPointCommand, AddShapeCommand,
    AlignShapesCommand, ApplyClassCommand, ApplyLayoutCommand, Command,
    CompositeCommand, DeleteEdgeCommand, DeletePathPointCommand,
    DeleteVertexCommand, DistributeShapesCommand, Document, Edge, EditorConfig,
    GroupShapesCommand, History, InsertVertexCommand, MoveShapeCommand,
    MoveVertexCommand, Node, NodeLabelChangeCommand, Point,
    RotateShapeCommand, StyleChangeCommand, UngroupShapesCommand, ZOrderCommand,
    build_delete_command, compute_layout, shape_from_dict, validate_document,
)
from drawcore.events import HISTORY_CHANGED, EventBus
from drawcore.graph_commands import (
    DeleteNodeCommand, EdgeCurveAmountChangeCommand, EdgeDirectionChangeCommand,
    EdgeLabelChangeCommand, EdgeLineTypeChangeCommand,
)
from drawcore.models import AnyShape, Group

logger = logging.getLogger(__name__)


class EditorSession:
    """
    Manages a single document's state and history.

    Features:
    - O(1) shape lookups via the document index
    - Command-based undo/redo history (bounded by config.max_history)
    - Change callbacks fired whenever history changes
    """

    def __init__(self, config: Optional[EditorConfig] = None):
        self.config = config or EditorConfig()
        self.events = EventBus()
        self._on_change_callbacks: list[Callable] = []
        self.events.on(HISTORY_CHANGED, lambda payload: self._notify_change())
        self.document = Document(config=self.config, events=self.events)
        self.history = History(events=self.events, max_history=self.config.max_history)

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for document changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    # --- Document lifecycle ---

    def reset(self):
        """Start a fresh, empty document with empty history."""
        self.document = Document(config=self.config, events=self.events)
        self.history = History(events=self.events, max_history=self.config.max_history)
        logger.info("Started new document")
        self._notify_change()

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "document": self.document.to_json_dict(),
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "undo_description": self.history.undo_description,
            "redo_description": self.history.redo_description,
            "history_state": self.history.state.value,
        }

    # --- History ---

    def run(self, command: Command) -> Command:
        self.history.execute(command)
        return command

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    # --- Lookups ---

    def get_shape(self, shape_id: str) -> Optional[AnyShape]:
        return self.document.get_shape(shape_id)

    def get_node(self, node_id: str) -> Optional[Node]:
        shape = self.document.get_shape(node_id)
        return shape if isinstance(shape, Node) else None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        shape = self.document.get_shape(edge_id)
        return shape if isinstance(shape, Edge) else None

    def _require_shapes(self, shape_ids: list[str]) -> list[AnyShape]:
        shapes = []
        for shape_id in shape_ids:
            shape = self.document.get_shape(shape_id)
            if shape is None:
                raise ValueError(f"Shape not found: {shape_id}")
            shapes.append(shape)
        return shapes

    # --- Nodes ---

    def add_node(self, **kwargs) -> Node:
        """Add a new node to the document."""
        node = Node(**kwargs)
        self.run(AddNodeCommand(self.document, node))
        return node

    def update_node(
        self,
        node_id: str,
        label: Optional[str] = None,
        font_size: Optional[float] = None,
        rx: Optional[float] = None,
        ry: Optional[float] = None,
        cx: Optional[float] = None,
        cy: Optional[float] = None,
        rotation: Optional[float] = None,
    ) -> Optional[Node]:
        """Update a node; all provided fields change in one undoable step."""
        node = self.get_node(node_id)
        if node is None:
            return None

        commands: list[Command] = []
        changes = {
            key: value
            for key, value in (("label", label), ("font_size", font_size), ("rx", rx), ("ry", ry))
            if value is not None
        }
        if changes:
            commands.append(NodeLabelChangeCommand(self.document, node, **changes))
        if cx is not None or cy is not None:
            dx = (cx - node.cx) if cx is not None else 0.0
            dy = (cy - node.cy) if cy is not None else 0.0
            commands.append(MoveShapeCommand(self.document, [node], dx, dy))
        if rotation is not None:
            commands.append(RotateShapeCommand(self.document, node, rotation))
        if commands:
            self.run(CompositeCommand(commands, f'Update node "{node.label or node.id}"'))
        return node

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and all connected edges."""
        node = self.get_node(node_id)
        if node is None:
            return False
        self.run(DeleteNodeCommand(self.document, node))
        return True

    # --- Edges ---

    def add_edge(self, source: str, target: str, direction: str = "none", label: str = "") -> Edge:
        """Add a new edge between two registered nodes."""
        if not source or not target:
            raise ValueError("Both source and target nodes must be specified")
        command = AddEdgeCommand.connect(self.document, source, target, direction, label=label)
        self.run(command)
        return command.shape

    def update_edge(
        self,
        edge_id: str,
        direction: Optional[str] = None,
        label: Optional[str] = None,
        curve_amount: Optional[float] = None,
        line_type: Optional[str] = None,
    ) -> Optional[Edge]:
        edge = self.get_edge(edge_id)
        if edge is None:
            return None
        commands: list[Command] = []
        if direction is not None:
            commands.append(EdgeDirectionChangeCommand(self.document, edge, direction))
        if label is not None:
            commands.append(EdgeLabelChangeCommand(self.document, edge, label))
        if line_type is not None:
            commands.append(EdgeLineTypeChangeCommand(self.document, edge, line_type))
        if curve_amount is not None:
            commands.append(EdgeCurveAmountChangeCommand(self.document, edge, curve_amount))
        if commands:
            self.run(CompositeCommand(commands, "Update edge"))
        return edge

    def delete_edge(self, edge_id: str) -> bool:
        edge = self.get_edge(edge_id)
        if edge is None:
            return False
        self.run(DeleteEdgeCommand(self.document, edge))
        return True

    # --- Generic shapes ---

    def add_shape(self, data: dict[str, Any]) -> AnyShape:
        """
        Add a primitive shape or group from serialized data.

        Nodes and edges must go through add_node/add_edge so the graph
        parameters are assigned, and a group may not contain them.
        """
        if data.get("type") in ("node", "edge"):
            raise ValueError("Use the nodes/edges endpoints for graph shapes")
        shape = shape_from_dict(data, self.document.graph)
        self.run(AddShapeCommand(self.document, shape))
        return shape

    def delete_shapes(self, shape_ids: list[str]):
        self.run(build_delete_command(self.document, self._require_shapes(shape_ids)))

    def move_shapes(self, shape_ids: list[str], dx: float, dy: float):
        self.run(MoveShapeCommand(self.document, self._require_shapes(shape_ids), dx, dy))

    def rotate_shape(self, shape_id: str, rotation: float):
        shape, = self._require_shapes([shape_id])
        self.run(RotateShapeCommand(self.document, shape, rotation))

    def restyle(self, shape_ids: list[str], updates: dict[str, Any]):
        self.run(StyleChangeCommand(self.document, self._require_shapes(shape_ids), updates))

    def apply_class(self, shape_ids: list[str], class_name: Optional[str], style: Optional[dict[str, Any]] = None):
        self.run(ApplyClassCommand(self.document, self._require_shapes(shape_ids), class_name, style))

    # --- Vertices and path points ---

    def move_vertex(self, shape_id: str, index: int, x: float, y: float):
        shape, = self._require_shapes([shape_id])
        self.run(MoveVertexCommand(self.document, shape, index, Point(x, y)))

    def insert_vertex(self, shape_id: str, x: float, y: float, index: Optional[int] = None):
        shape, = self._require_shapes([shape_id])
        self.run(InsertVertexCommand(self.document, shape, Point(x, y), index))

    def delete_vertex(self, shape_id: str, index: int):
        shape, = self._require_shapes([shape_id])
        self.run(DeleteVertexCommand(self.document, shape, index))

    def add_path_point(
        self,
        shape_id: str,
        segment_index: int,
        t: float = 0.5,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ):
        """Split a path segment; x/y place the point on a line segment."""
        shape, = self._require_shapes([shape_id])
        point = Point(x, y) if x is not None and y is not None else None
        self.run(AddPathPointCommand(self.document, shape, segment_index, t, point))

    def delete_path_point(self, shape_id: str, index: int):
        shape, = self._require_shapes([shape_id])
        self.run(DeletePathPointCommand(self.document, shape, index))

    # --- Arrangement ---

    def align(self, shape_ids: list[str], alignment: str):
        self.run(AlignShapesCommand(self.document, self._require_shapes(shape_ids), alignment))

    def distribute(self, shape_ids: list[str], axis: str = "horizontal"):
        self.run(DistributeShapesCommand(self.document, self._require_shapes(shape_ids), axis))

    def change_z_order(self, shape_ids: list[str], operation: str):
        self.run(ZOrderCommand(self.document, self._require_shapes(shape_ids), operation))

    def group(self, shape_ids: list[str]) -> Group:
        command = GroupShapesCommand(self.document, self._require_shapes(shape_ids))
        self.run(command)
        return command.group

    def ungroup(self, group_id: str):
        group, = self._require_shapes([group_id])
        self.run(UngroupShapesCommand(self.document, group))

    def auto_layout(self, strategy: str = "grid", **options) -> bool:
        """
        Automatically arrange nodes.

        Strategies: grid, tree, force, circle, concentric.
        """
        if not self.document.get_nodes():
            return False
        positions = compute_layout(self.document, strategy, **options)
        self.run(ApplyLayoutCommand(self.document, positions, name=f"{strategy} layout"))
        return True

    # --- Queries ---

    def hit_test(self, x: float, y: float, tolerance: Optional[float] = None) -> Optional[AnyShape]:
        return self.document.hit_test(Point(x, y), tolerance)

    def validate(self) -> list:
        return validate_document(self.document)


# Global instance for the application
editor_session = EditorSession(EditorConfig.from_env())
