"""
Arrangement commands: z-order, align, distribute, group and ungroup.

Offsets for align and distribute are computed once at construction, so
redo replays exactly the same movement regardless of later state.
"""

import logging
from enum import Enum
from typing import Sequence

from .commands import Command, InvalidCommandError, _require_in_document
from .document import Document
from .geometry import Point, rotate_point, round3
from .layout import alignment_offsets, distribution_offsets
from .models import AnyShape, Edge, Group, Node

logger = logging.getLogger(__name__)


class ZOrderOperation(str, Enum):
    BRING_TO_FRONT = "bring_to_front"
    SEND_TO_BACK = "send_to_back"
    BRING_FORWARD = "bring_forward"
    SEND_BACKWARD = "send_backward"


def reorder(shapes: list[AnyShape], selected: Sequence[AnyShape], operation: ZOrderOperation) -> list[AnyShape]:
    """New back-to-front order with `selected` moved; relative order is kept within each set."""
    chosen = {id(s) for s in selected}
    if operation == ZOrderOperation.BRING_TO_FRONT:
        return [s for s in shapes if id(s) not in chosen] + [s for s in shapes if id(s) in chosen]
    if operation == ZOrderOperation.SEND_TO_BACK:
        return [s for s in shapes if id(s) in chosen] + [s for s in shapes if id(s) not in chosen]

    result = list(shapes)
    if operation == ZOrderOperation.BRING_FORWARD:
        for i in range(len(result) - 2, -1, -1):
            if id(result[i]) in chosen and id(result[i + 1]) not in chosen:
                result[i], result[i + 1] = result[i + 1], result[i]
    else:
        for i in range(1, len(result)):
            if id(result[i]) in chosen and id(result[i - 1]) not in chosen:
                result[i], result[i - 1] = result[i - 1], result[i]
    return result


class ZOrderCommand(Command):
    """Move shapes within the stacking order."""

    def __init__(self, document: Document, shapes: Sequence[AnyShape], operation: ZOrderOperation | str):
        if not shapes:
            raise InvalidCommandError("No shapes to reorder")
        try:
            self.operation = ZOrderOperation(operation)
        except ValueError as e:
            raise InvalidCommandError(f"Unknown z-order operation: {operation}") from e
        _require_in_document(document, shapes)
        self.document = document
        self.shapes = list(shapes)
        self.before = document.get_shapes()
        self.after = reorder(self.before, self.shapes, self.operation)

    def execute(self):
        self.document.reorder_shapes(self.after)

    def undo(self):
        self.document.reorder_shapes(self.before)

    def get_description(self) -> str:
        return self.operation.value.replace("_", " ").capitalize()


class _OffsetCommand(Command):
    """Moves each shape by its own precomputed (dx, dy)."""

    def __init__(self, document: Document, shapes: Sequence[AnyShape], offsets: list[tuple[float, float]]):
        self.document = document
        self.shapes = list(shapes)
        self.offsets = [(round3(dx), round3(dy)) for dx, dy in offsets]

    def _apply(self, sign: float):
        for shape, (dx, dy) in zip(self.shapes, self.offsets):
            if dx == 0 and dy == 0:
                continue
            shape.move(sign * dx, sign * dy)
            self.document.shape_changed(shape)

    def execute(self):
        self._apply(1.0)

    def undo(self):
        self._apply(-1.0)


def _movable(shapes: Sequence[AnyShape]) -> list[AnyShape]:
    # Edges follow their nodes and are never moved directly
    return [s for s in shapes if not isinstance(s, Edge)]


class AlignShapesCommand(_OffsetCommand):

    def __init__(self, document: Document, shapes: Sequence[AnyShape], alignment: str):
        targets = _movable(shapes)
        if len(targets) < 2:
            raise InvalidCommandError("Align needs at least two shapes")
        _require_in_document(document, targets)
        try:
            offsets = alignment_offsets([s.get_bounds() for s in targets], alignment)
        except ValueError as e:
            raise InvalidCommandError(str(e)) from e
        super().__init__(document, targets, offsets)
        self.alignment = alignment

    def get_description(self) -> str:
        return f"Align {len(self.shapes)} shapes {self.alignment}"


class DistributeShapesCommand(_OffsetCommand):

    def __init__(self, document: Document, shapes: Sequence[AnyShape], axis: str = "horizontal"):
        targets = _movable(shapes)
        if len(targets) < 3:
            raise InvalidCommandError("Distribute needs at least three shapes")
        _require_in_document(document, targets)
        try:
            offsets = distribution_offsets([s.get_bounds() for s in targets], axis)
        except ValueError as e:
            raise InvalidCommandError(str(e)) from e
        super().__init__(document, targets, offsets)
        self.axis = axis

    def get_description(self) -> str:
        return f"Distribute {len(self.shapes)} shapes {self.axis}ly"


class GroupShapesCommand(Command):
    """
    Replace several top-level shapes with one group.

    The group takes the z-order slot of the front-most member. Graph shapes
    stay top-level so the registry always sees them.
    """

    def __init__(self, document: Document, shapes: Sequence[AnyShape]):
        if len(shapes) < 2:
            raise InvalidCommandError("Group needs at least two shapes")
        if any(isinstance(s, (Node, Edge)) for s in shapes):
            raise InvalidCommandError("Nodes and edges cannot be grouped")
        _require_in_document(document, shapes)
        self.document = document
        self._slots = sorted(((document.index_of(s), s) for s in shapes), key=lambda slot: slot[0])
        self.group = Group(children=[shape for _, shape in self._slots])
        self.group_index = self._slots[-1][0] - (len(self._slots) - 1)

    def execute(self):
        for _, shape in self._slots:
            self.document.remove_shape(shape)
        self.document.add_shape(self.group, self.group_index)

    def undo(self):
        self.document.remove_shape(self.group)
        for index, shape in self._slots:
            self.document.add_shape(shape, index)

    def get_description(self) -> str:
        return f"Group {len(self._slots)} shapes"


class UngroupShapesCommand(Command):
    """
    Replace a group with its children at the group's z-order slot.

    A rotated group's rotation is pushed down into the children so they
    keep their on-screen placement.
    """

    def __init__(self, document: Document, group: Group):
        if not isinstance(group, Group):
            raise InvalidCommandError(f"Not a group: {group.type}")
        _require_in_document(document, [group])
        self.document = document
        self.group = group
        self.children = list(group.children)
        self.index = document.index_of(group)
        self._adjustments: list[tuple[float, float, float]] = []  # (dx, dy, old rotation)

    def execute(self):
        self.document.remove_shape(self.group)
        self._adjustments = []
        pivot = self.group.get_rotation_center()
        for offset, child in enumerate(self.children):
            self._adjustments.append(self._push_rotation(child, pivot))
            self.document.add_shape(child, self.index + offset)

    def _push_rotation(self, child: AnyShape, pivot: Point) -> tuple[float, float, float]:
        old_rotation = child.rotation
        if self.group.rotation == 0:
            return 0.0, 0.0, old_rotation
        center = child.get_rotation_center()
        moved = rotate_point(center, pivot, self.group.rotation)
        dx, dy = round3(moved.x - center.x), round3(moved.y - center.y)
        child.move(dx, dy)
        child.set_rotation(old_rotation + self.group.rotation)
        return dx, dy, old_rotation

    def undo(self):
        for child, (dx, dy, rotation) in zip(self.children, self._adjustments):
            self.document.remove_shape(child)
            if dx or dy:
                child.move(-dx, -dy)
            child.set_rotation(rotation)
        self.document.add_shape(self.group, self.index)

    def get_description(self) -> str:
        return f"Ungroup {len(self.children)} shapes"
