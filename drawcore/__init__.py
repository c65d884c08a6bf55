"""
drawcore - Vector drawing and diagram editor core.

Shape model, graph registry, edge routing and the command/undo framework
used by the drawserver HTTP API and any other front end.
"""

from .config import EditorConfig
from .geometry import (
    Bounds,
    Matrix,
    MatrixDecomposition,
    Point,
    decompose_matrix,
    get_rotated_bounds,
    normalize_rotation,
    parse_transform,
    rotate_point,
    round3,
)
from .models import (
    # Enums
    ShapeType,
    EdgeDirection,
    EdgeLineType,
    TextAnchor,
    StrokeLinecap,
    # Shapes
    ShapeStyle,
    Line,
    Rectangle,
    Ellipse,
    Text,
    Polygon,
    Polyline,
    Path,
    Image,
    Node,
    Edge,
    Group,
    AnyShape,
    shape_from_dict,
    generate_shape_id,
)
from .routing import EdgeRoute, route_edge
from .graph import GraphRegistry
from .events import EventBus
from .document import Document
from .history import History, HistoryState
from .commands import (
    Command,
    CompositeCommand,
    InvalidCommandError,
    AddShapeCommand,
    DeleteShapeCommand,
    MoveShapeCommand,
    ResizeShapeCommand,
    RotateShapeCommand,
    StyleChangeCommand,
    ApplyClassCommand,
    TextPropertyChangeCommand,
)
from .graph_commands import (
    AddNodeCommand,
    AddEdgeCommand,
    DeleteEdgeCommand,
    DeleteNodeCommand,
    EdgeDirectionChangeCommand,
    EdgeCurveAmountChangeCommand,
    EdgeLineTypeChangeCommand,
    EdgeLabelChangeCommand,
    NodeLabelChangeCommand,
    ApplyLayoutCommand,
    DeleteShapesCommand,
    build_delete_command,
)
from .vertex_commands import (
    MoveVertexCommand,
    InsertVertexCommand,
    DeleteVertexCommand,
    AddPathPointCommand,
    DeletePathPointCommand,
)
from .arrange_commands import (
    ZOrderOperation,
    ZOrderCommand,
    AlignShapesCommand,
    DistributeShapesCommand,
    GroupShapesCommand,
    UngroupShapesCommand,
)
from .layout import compute_layout, grid_layout, tree_layout, force_layout, circular_layout, concentric_layout
from .validation import validate_document, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    "EditorConfig",
    # Geometry
    "Bounds",
    "Matrix",
    "MatrixDecomposition",
    "Point",
    "decompose_matrix",
    "get_rotated_bounds",
    "normalize_rotation",
    "parse_transform",
    "rotate_point",
    "round3",
    # Enums
    "ShapeType",
    "EdgeDirection",
    "EdgeLineType",
    "TextAnchor",
    "StrokeLinecap",
    # Shapes
    "ShapeStyle",
    "Line",
    "Rectangle",
    "Ellipse",
    "Text",
    "Polygon",
    "Polyline",
    "Path",
    "Image",
    "Node",
    "Edge",
    "Group",
    "AnyShape",
    "shape_from_dict",
    "generate_shape_id",
    # Graph
    "EdgeRoute",
    "route_edge",
    "GraphRegistry",
    # Document and history
    "EventBus",
    "Document",
    "History",
    "HistoryState",
    # Commands
    "Command",
    "CompositeCommand",
    "InvalidCommandError",
    "AddShapeCommand",
    "DeleteShapeCommand",
    "MoveShapeCommand",
    "ResizeShapeCommand",
    "RotateShapeCommand",
    "StyleChangeCommand",
    "ApplyClassCommand",
    "TextPropertyChangeCommand",
    "AddNodeCommand",
    "AddEdgeCommand",
    "DeleteEdgeCommand",
    "DeleteNodeCommand",
    "EdgeDirectionChangeCommand",
    "EdgeCurveAmountChangeCommand",
    "EdgeLineTypeChangeCommand",
    "EdgeLabelChangeCommand",
    "NodeLabelChangeCommand",
    "ApplyLayoutCommand",
    "DeleteShapesCommand",
    "build_delete_command",
    "MoveVertexCommand",
    "InsertVertexCommand",
    "DeleteVertexCommand",
    "AddPathPointCommand",
    "DeletePathPointCommand",
    "ZOrderOperation",
    "ZOrderCommand",
    "AlignShapesCommand",
    "DistributeShapesCommand",
    "GroupShapesCommand",
    "UngroupShapesCommand",
    # Layout
    "compute_layout",
    "grid_layout",
    "tree_layout",
    "force_layout",
    "circular_layout",
    "concentric_layout",
    # Validation
    "validate_document",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
