"""
Command framework and shape-level commands.

Every user edit is a Command executed through History. A command captures
everything it needs to undo itself when it is constructed, so construction
is also where invalid requests are rejected (InvalidCommandError).

Graph commands live in graph_commands, arrangement commands (z-order,
align, distribute, group) in arrange_commands, vertex and path point
edits in vertex_commands.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from .document import Document
from .events import STYLE_CHANGED
from .geometry import normalize_rotation, round3
from .models import AnyShape, Edge, Group, Node, ShapeStyle, Text

logger = logging.getLogger(__name__)


class InvalidCommandError(ValueError):
    """Raised when a command cannot be built for the given arguments."""


class Command(ABC):
    """A reversible edit."""

    @abstractmethod
    def execute(self):
        ...

    @abstractmethod
    def undo(self):
        ...

    @abstractmethod
    def get_description(self) -> str:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__}: {self.get_description()}>"


def _shape_name(shape: AnyShape) -> str:
    label = getattr(shape, "label", "")
    return f'{shape.type} "{label}"' if label else shape.type


def _require_in_document(document: Document, shapes: Sequence[AnyShape]):
    for shape in shapes:
        if shape not in document:
            raise InvalidCommandError(f"Shape not in document: {shape.id}")


class CompositeCommand(Command):
    """Runs child commands in order and undoes them in reverse."""

    def __init__(self, commands: Sequence[Command], description: Optional[str] = None):
        self.commands = list(commands)
        self._description = description

    def execute(self):
        for command in self.commands:
            command.execute()

    def undo(self):
        for command in reversed(self.commands):
            command.undo()

    def get_description(self) -> str:
        if self._description:
            return self._description
        if len(self.commands) == 1:
            return self.commands[0].get_description()
        return f"{len(self.commands)} changes"


# --- Adding and removing ---

class AddShapeCommand(Command):
    """Insert a shape; by default at the front of the z-order."""

    def __init__(self, document: Document, shape: AnyShape, index: Optional[int] = None):
        if document.get_shape(shape.id) is not None:
            raise InvalidCommandError(f"Shape already in document: {shape.id}")
        if isinstance(shape, Group) and any(isinstance(c, (Node, Edge)) for c in shape.iter_descendants()):
            raise InvalidCommandError("Nodes and edges cannot be placed inside a group")
        self.document = document
        self.shape = shape
        self.index = index

    def execute(self):
        self.document.add_shape(self.shape, self.index)
        # Redo must land on the same slot even if index was "front"
        self.index = self.document.index_of(self.shape)

    def undo(self):
        self.document.remove_shape(self.shape)

    def get_description(self) -> str:
        return f"Add {_shape_name(self.shape)}"


class DeleteShapeCommand(Command):
    """
    Remove a shape and restore it at its original z-order index on undo.

    Nodes with attached edges must go through DeleteNodeCommand so the
    edges are removed with them.
    """

    def __init__(self, document: Document, shape: AnyShape):
        _require_in_document(document, [shape])
        if isinstance(shape, Node) and document.graph.get_edge_ids_for_node(shape.id):
            raise InvalidCommandError(f"Node {shape.id} has edges; use DeleteNodeCommand")
        self.document = document
        self.shape = shape
        self.index = document.index_of(shape)

    def execute(self):
        self.index = self.document.remove_shape(self.shape)

    def undo(self):
        self.document.add_shape(self.shape, self.index)

    def get_description(self) -> str:
        return f"Delete {_shape_name(self.shape)}"


# --- Geometry ---

class MoveShapeCommand(Command):
    """Translate shapes by a fixed delta; edges on moved nodes follow."""

    def __init__(self, document: Document, shapes: Sequence[AnyShape], dx: float, dy: float):
        _require_in_document(document, shapes)
        self.document = document
        self.shapes = list(shapes)
        # Deltas on the 3-decimal grid keep undo an exact inverse
        self.dx = round3(dx)
        self.dy = round3(dy)

    def _apply(self, dx: float, dy: float):
        for shape in self.shapes:
            shape.move(dx, dy)
            self.document.shape_changed(shape)

    def execute(self):
        self._apply(self.dx, self.dy)

    def undo(self):
        self._apply(-self.dx, -self.dy)

    def get_description(self) -> str:
        noun = _shape_name(self.shapes[0]) if len(self.shapes) == 1 else f"{len(self.shapes)} shapes"
        return f"Move {noun} by ({self.dx:g}, {self.dy:g})"


class ResizeShapeCommand(Command):
    """
    Swap a shape between two snapshots of its resizable fields.

    Snapshots come from shape.capture_state(): line endpoints, ellipse and
    node centre plus radii, rectangle and image boxes, text position plus
    font size. Other shape types cannot be resized this way.
    """

    def __init__(self, document: Document, shape: AnyShape, before: dict[str, float], after: dict[str, float]):
        if not shape.RESIZE_FIELDS:
            raise InvalidCommandError(f"Cannot resize shape type: {shape.type}")
        allowed = set(shape.RESIZE_FIELDS)
        if set(before) != set(after) or not set(before) <= allowed:
            raise InvalidCommandError(
                f"Resize state for {shape.type} must use the same keys from {sorted(allowed)}"
            )
        _require_in_document(document, [shape])
        self.document = document
        self.shape = shape
        self.before = dict(before)
        self.after = {key: round3(value) for key, value in after.items()}

    def execute(self):
        self.shape.restore_state(self.after)
        self.document.shape_changed(self.shape)

    def undo(self):
        self.shape.restore_state(self.before)
        self.document.shape_changed(self.shape)

    def get_description(self) -> str:
        return f"Resize {_shape_name(self.shape)}"


class RotateShapeCommand(Command):
    """Set a shape's rotation (degrees)."""

    def __init__(self, document: Document, shape: AnyShape, rotation: float, before: Optional[float] = None):
        if isinstance(shape, Edge):
            raise InvalidCommandError("Edges cannot be rotated")
        _require_in_document(document, [shape])
        self.document = document
        self.shape = shape
        self.before = normalize_rotation(shape.rotation if before is None else before)
        self.after = normalize_rotation(rotation)

    def execute(self):
        self.shape.set_rotation(self.after)
        self.document.shape_changed(self.shape)

    def undo(self):
        self.shape.set_rotation(self.before)
        self.document.shape_changed(self.shape)

    def get_description(self) -> str:
        return f"Rotate {_shape_name(self.shape)} to {self.after:g}°"


# --- Appearance ---

class StyleChangeCommand(Command):
    """Merge style updates into one or more shapes."""

    def __init__(self, document: Document, shapes: Sequence[AnyShape], updates: dict[str, Any]):
        if not shapes:
            raise InvalidCommandError("No shapes to restyle")
        unknown = set(updates) - set(ShapeStyle.model_fields)
        if unknown:
            raise InvalidCommandError(f"Unknown style properties: {sorted(unknown)}")
        _require_in_document(document, shapes)
        self.document = document
        self.shapes = list(shapes)
        self.updates = dict(updates)
        self.before = [shape.get_style() for shape in self.shapes]
        try:
            self.after = [
                ShapeStyle.model_validate({**style.model_dump(), **self.updates})
                for style in self.before
            ]
        except ValidationError as e:
            raise InvalidCommandError(str(e)) from e

    def _apply(self, styles: list[ShapeStyle]):
        for shape, style in zip(self.shapes, styles):
            shape.set_style(style)
            self.document.shape_changed(shape)
        self.document.events.emit(STYLE_CHANGED, {"shape_ids": [s.id for s in self.shapes]})

    def execute(self):
        self._apply(self.after)

    def undo(self):
        self._apply(self.before)

    def get_description(self) -> str:
        return f"Change {', '.join(sorted(self.updates))}"


class ApplyClassCommand(Command):
    """
    Set (or clear, with None) a style class on shapes.

    The class's style properties are merged into each shape in the same
    step, so undo restores both the old class name and the old style.
    """

    def __init__(
        self,
        document: Document,
        shapes: Sequence[AnyShape],
        class_name: Optional[str],
        style: Optional[dict[str, Any]] = None,
    ):
        if not shapes:
            raise InvalidCommandError("No shapes to apply a class to")
        style = dict(style or {})
        unknown = set(style) - set(ShapeStyle.model_fields)
        if unknown:
            raise InvalidCommandError(f"Unknown style properties: {sorted(unknown)}")
        _require_in_document(document, shapes)
        self.document = document
        self.shapes = list(shapes)
        self.class_name = class_name or None
        self.before = [(shape.class_name, shape.get_style()) for shape in self.shapes]
        try:
            self.after_styles = [
                ShapeStyle.model_validate({**old_style.model_dump(), **style})
                for _, old_style in self.before
            ]
        except ValidationError as e:
            raise InvalidCommandError(str(e)) from e

    def _apply(self, states: list[tuple[Optional[str], ShapeStyle]]):
        for shape, (class_name, style) in zip(self.shapes, states):
            shape.class_name = class_name
            shape.set_style(style)
            self.document.shape_changed(shape)
        self.document.events.emit(STYLE_CHANGED, {"shape_ids": [s.id for s in self.shapes]})

    def execute(self):
        self._apply([(self.class_name, style) for style in self.after_styles])

    def undo(self):
        self._apply(self.before)

    def get_description(self) -> str:
        if self.class_name is None:
            return "Remove style class"
        return f'Apply class "{self.class_name}"'


class TextPropertyChangeCommand(Command):
    """Change content or typography of a text shape."""

    PROPERTIES = (
        "content", "font_size", "font_family", "font_weight",
        "text_anchor", "dominant_baseline", "line_height",
    )

    def __init__(self, document: Document, text: Text, **changes):
        if not isinstance(text, Text):
            raise InvalidCommandError(f"Not a text shape: {text.type}")
        unknown = set(changes) - set(self.PROPERTIES)
        if unknown:
            raise InvalidCommandError(f"Unknown text properties: {sorted(unknown)}")
        if not changes:
            raise InvalidCommandError("No text properties to change")
        _require_in_document(document, [text])
        self.document = document
        self.text = text
        self.before = {name: getattr(text, name) for name in changes}
        try:
            validated = Text.model_validate({**text.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidCommandError(str(e)) from e
        self.after = {name: getattr(validated, name) for name in changes}

    def _apply(self, values: dict[str, Any]):
        for name, value in values.items():
            setattr(self.text, name, value)
        # Cached renderer measurements no longer describe the text
        self.text.set_measured_bounds(None)
        self.document.shape_changed(self.text)

    def execute(self):
        self._apply(self.after)

    def undo(self):
        self._apply(self.before)

    def get_description(self) -> str:
        return f"Change text {', '.join(sorted(self.after))}"
