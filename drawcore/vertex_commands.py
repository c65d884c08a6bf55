"""
Vertex and path point editing commands.

Polygon and polyline vertices are moved, inserted and deleted through the
shape's vertex methods. Path points are edited by swapping the command
list for one computed at construction (split or shortened), so undo puts
back the exact original commands.
"""

from typing import Optional, Union

from .commands import Command, InvalidCommandError, _require_in_document
from .document import Document
from .geometry import Point, round_point
from .models import Path, Polygon, Polyline
from .path_data import PathDataError, remove_segment, split_segment

PointShape = Union[Polygon, Polyline]

# Fewest vertices each shape type may be left with
MIN_VERTICES = {"polygon": 3, "polyline": 2}


def _require_point_shape(shape) -> PointShape:
    if not isinstance(shape, (Polygon, Polyline)):
        raise InvalidCommandError(f"Shape has no editable vertices: {shape.type}")
    return shape


def _require_path(shape) -> Path:
    if not isinstance(shape, Path):
        raise InvalidCommandError(f"Not a path: {shape.type}")
    return shape


# --- Polygon / polyline vertices ---

class MoveVertexCommand(Command):

    def __init__(self, document: Document, shape: PointShape, index: int, point: Point):
        _require_point_shape(shape)
        if index < 0 or index >= len(shape.points):
            raise InvalidCommandError(f"Vertex index {index} out of range")
        _require_in_document(document, [shape])
        self.document = document
        self.shape = shape
        self.index = index
        self.before = shape.points[index]
        self.after = round_point(point)

    def execute(self):
        self.shape.set_vertex(self.index, self.after)
        self.document.shape_changed(self.shape)

    def undo(self):
        self.shape.set_vertex(self.index, self.before)
        self.document.shape_changed(self.shape)

    def get_description(self) -> str:
        return f"Move {self.shape.type} point"


class InsertVertexCommand(Command):
    """Insert a vertex at `index`; None appends after the last one."""

    def __init__(self, document: Document, shape: PointShape, point: Point, index: Optional[int] = None):
        _require_point_shape(shape)
        if index is None:
            index = len(shape.points)
        if index < 0 or index > len(shape.points):
            raise InvalidCommandError(f"Vertex index {index} out of range")
        _require_in_document(document, [shape])
        self.document = document
        self.shape = shape
        self.index = index
        self.point = round_point(point)

    def execute(self):
        self.shape.insert_vertex(self.index, self.point)
        self.document.shape_changed(self.shape)

    def undo(self):
        self.shape.remove_vertex(self.index)
        self.document.shape_changed(self.shape)

    def get_description(self) -> str:
        return f"Add {self.shape.type} point"


class DeleteVertexCommand(Command):

    def __init__(self, document: Document, shape: PointShape, index: int):
        _require_point_shape(shape)
        if index < 0 or index >= len(shape.points):
            raise InvalidCommandError(f"Vertex index {index} out of range")
        minimum = MIN_VERTICES[shape.type]
        if len(shape.points) <= minimum:
            raise InvalidCommandError(f"A {shape.type} needs at least {minimum} points")
        _require_in_document(document, [shape])
        self.document = document
        self.shape = shape
        self.index = index
        self.point = shape.points[index]

    def execute(self):
        self.shape.remove_vertex(self.index)
        self.document.shape_changed(self.shape)

    def undo(self):
        self.shape.insert_vertex(self.index, self.point)
        self.document.shape_changed(self.shape)

    def get_description(self) -> str:
        return f"Delete {self.shape.type} point"


# --- Path points ---

class _PathCommandsSwap(Command):

    def __init__(self, document: Document, path: Path, after: list):
        self.document = document
        self.path = path
        self.before = list(path.commands)
        self.after = after

    def execute(self):
        self.path.commands = list(self.after)
        self.document.shape_changed(self.path)

    def undo(self):
        self.path.commands = list(self.before)
        self.document.shape_changed(self.path)


class AddPathPointCommand(_PathCommandsSwap):
    """
    Split the segment at `segment_index` by adding a point.

    Curves split at t and keep their outline; lines and the closing
    segment split at `point` when one is given.
    """

    def __init__(self, document: Document, path: Path, segment_index: int,
                 t: float = 0.5, point: Optional[Point] = None):
        _require_path(path)
        _require_in_document(document, [path])
        try:
            after = split_segment(path.commands, segment_index, t, point)
        except PathDataError as e:
            raise InvalidCommandError(str(e)) from e
        super().__init__(document, path, after)

    def get_description(self) -> str:
        return "Add point to path"


class DeletePathPointCommand(_PathCommandsSwap):

    def __init__(self, document: Document, path: Path, index: int):
        _require_path(path)
        _require_in_document(document, [path])
        try:
            after = remove_segment(path.commands, index)
        except PathDataError as e:
            raise InvalidCommandError(str(e)) from e
        super().__init__(document, path, after)

    def get_description(self) -> str:
        return "Delete path point"
