"""
Shape models for the drawing core.

Every drawable element is a pydantic model sharing a thin ShapeBase:
- Primitive shapes: line, rectangle, ellipse, text, polygon, polyline,
  path and image
- Diagram shapes: node (labelled ellipse) and edge (derived connector)
- Group: an ordered container of other shapes

The variants form a closed union discriminated by `type` (see AnyShape),
so serialized data always reconstructs to the right class through
shape_from_dict().

Coordinates produced by move, transform, resize and vertex edits are
rounded to three decimals at the point they are computed.
"""

import logging
import math
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, TypeAdapter, field_validator, model_validator

from .config import DEFAULT_CONFIG
from .geometry import (
    Bounds, Matrix, Point, apply_matrix_to_point, decompose_matrix,
    distance_to_segment, get_rotated_bounds, normalize_rotation,
    point_in_polygon, points_to_bounds, polyline_distance, rotate_point, round3,
)
from .path_data import (
    PathCommand, flatten_path, format_path_data, map_points, parse_path_data,
)
from .routing import EdgeRoute, connection_point, route_edge

if TYPE_CHECKING:
    from .graph import GraphRegistry

logger = logging.getLogger(__name__)


DEFAULT_HIT_TOLERANCE = 5.0
ARROW_SIZE = 10.0


class ShapeType(str, Enum):
    """Discriminant values of the shape union."""
    LINE = "line"
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    TEXT = "text"
    POLYGON = "polygon"
    POLYLINE = "polyline"
    PATH = "path"
    IMAGE = "image"
    NODE = "node"
    EDGE = "edge"
    GROUP = "group"


class StrokeLinecap(str, Enum):
    BUTT = "butt"
    ROUND = "round"
    SQUARE = "square"


class EdgeDirection(str, Enum):
    """Which end of an edge carries the arrow."""
    NONE = "none"
    FORWARD = "forward"    # Arrow at the target
    BACKWARD = "backward"  # Arrow at the source


class EdgeLineType(str, Enum):
    STRAIGHT = "straight"
    CURVE = "curve"


class TextAnchor(str, Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"


def generate_shape_id() -> str:
    """Generate a unique shape ID."""
    return f"s{uuid.uuid4().hex[:8]}"


class ShapeStyle(BaseModel):
    """Visual style shared by all shapes."""
    model_config = ConfigDict(use_enum_values=True)

    fill: str = "#ffffff"
    fill_none: bool = False
    stroke: str = "#000000"
    stroke_width: float = 2.0
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    stroke_dasharray: str = ""
    stroke_linecap: StrokeLinecap = StrokeLinecap.BUTT

    def to_attributes(self) -> dict[str, Any]:
        """SVG presentation attributes for this style."""
        attrs: dict[str, Any] = {
            "fill": "none" if self.fill_none else self.fill,
            "stroke": self.stroke,
            "stroke-width": self.stroke_width,
            "opacity": self.opacity,
            "stroke-linecap": self.stroke_linecap,
        }
        if self.stroke_dasharray:
            attrs["stroke-dasharray"] = self.stroke_dasharray
        return attrs


class ShapeBase(BaseModel):
    """
    Behaviour shared by every shape variant.

    Subclasses provide get_base_bounds() (unrotated) and _hit_test_local()
    (point already mapped into the unrotated frame); rotation handling,
    cloning and serialization live here.
    """
    model_config = ConfigDict(use_enum_values=True)

    # Field names whose values a resize may change, captured for undo
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ()

    id: str = Field(default_factory=generate_shape_id)
    style: ShapeStyle = Field(default_factory=ShapeStyle)
    rotation: float = 0.0
    class_name: Optional[str] = None

    @field_validator("rotation")
    @classmethod
    def _normalize_rotation(cls, value: float) -> float:
        return normalize_rotation(value)

    # --- Style ---

    def get_style(self) -> ShapeStyle:
        """Return a copy of the style; mutate via set_style()."""
        return self.style.model_copy()

    def set_style(self, style: ShapeStyle):
        self.style = style.model_copy()

    # --- Rotation ---

    def set_rotation(self, angle: float):
        self.rotation = normalize_rotation(angle)

    def get_rotation_center(self) -> Point:
        return self.get_base_bounds().center

    def _to_local(self, point: Point) -> Point:
        if self.rotation == 0:
            return point
        return rotate_point(point, self.get_rotation_center(), -self.rotation)

    # --- Geometry ---

    def get_base_bounds(self) -> Bounds:
        raise NotImplementedError

    def get_bounds(self) -> Bounds:
        """Axis-aligned bounds including rotation."""
        return get_rotated_bounds(self.get_base_bounds(), self.rotation, self.get_rotation_center())

    def hit_test(self, point: Point, tolerance: float = DEFAULT_HIT_TOLERANCE) -> bool:
        return self._hit_test_local(self._to_local(point), tolerance)

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        raise NotImplementedError

    def move(self, dx: float, dy: float):
        raise NotImplementedError

    def apply_transform(self, translate_x: float, translate_y: float, scale_x: float, scale_y: float):
        raise NotImplementedError

    def apply_matrix(self, matrix: Matrix):
        """
        Apply an affine matrix to a box-like shape.

        Size is scaled, the rotation center is mapped through the matrix and
        the matrix rotation is added. Skew cannot be represented and is
        dropped with a warning.
        """
        parts = decompose_matrix(matrix)
        if parts.has_skew:
            logger.warning(
                "Dropping skew (%.3f deg) applying matrix to %s %s",
                parts.skew_x, self.type, self.id,
            )
        new_center = apply_matrix_to_point(matrix, self.get_rotation_center())
        self.apply_transform(0, 0, parts.scale_x, parts.scale_y)
        center = self.get_rotation_center()
        self.move(new_center.x - center.x, new_center.y - center.y)
        self.set_rotation(self.rotation + parts.rotation)

    # --- Resize snapshots ---

    def capture_state(self) -> dict[str, float]:
        """Snapshot of the resizable geometry fields."""
        return {name: getattr(self, name) for name in self.RESIZE_FIELDS}

    def restore_state(self, state: dict[str, float]):
        for name, value in state.items():
            setattr(self, name, value)

    # --- Copying and serialization ---

    def clone(self) -> "AnyShape":
        """Deep copy with a fresh id."""
        data = self.model_dump()
        data["id"] = generate_shape_id()
        return type(self).model_validate(data)

    def serialize(self) -> dict:
        return self.model_dump(mode="json")

    # --- Renderer boundary ---

    def render(self) -> dict:
        """Drawable description: tag, attributes and child elements."""
        element = self._render_element()
        element["attrs"]["id"] = self.id
        if self.class_name:
            element["attrs"]["class"] = self.class_name
        if self.rotation != 0:
            center = self.get_rotation_center()
            element["attrs"]["transform"] = (
                f"rotate({round3(self.rotation):g} {round3(center.x):g} {round3(center.y):g})"
            )
        return element

    def _render_element(self) -> dict:
        raise NotImplementedError

    def update_element(self):
        """Hook called after in-place geometry changes; a no-op without a live renderer."""


def _element(tag: str, attrs: dict[str, Any], children: list[dict] | None = None, text: str | None = None) -> dict:
    element: dict[str, Any] = {"tag": tag, "attrs": attrs, "children": children or []}
    if text is not None:
        element["text"] = text
    return element


def _points_attr(points: list[Point]) -> str:
    return " ".join(f"{p.x:g},{p.y:g}" for p in points)


# --- Primitive shapes ---

class Line(ShapeBase):
    type: Literal["line"] = "line"
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ("x1", "y1", "x2", "y2")

    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0

    def get_base_bounds(self) -> Bounds:
        return points_to_bounds([Point(self.x1, self.y1), Point(self.x2, self.y2)])

    def get_rotation_center(self) -> Point:
        return Point((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        return distance_to_segment(point, Point(self.x1, self.y1), Point(self.x2, self.y2)) <= tolerance

    def move(self, dx: float, dy: float):
        self.x1 = round3(self.x1 + dx)
        self.y1 = round3(self.y1 + dy)
        self.x2 = round3(self.x2 + dx)
        self.y2 = round3(self.y2 + dy)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.x1 = round3(self.x1 * scale_x + translate_x)
        self.y1 = round3(self.y1 * scale_y + translate_y)
        self.x2 = round3(self.x2 * scale_x + translate_x)
        self.y2 = round3(self.y2 * scale_y + translate_y)

    def apply_skew(self, skew_x: float, skew_y: float):
        """Shear both endpoints; angles in degrees."""
        tan_x = math.tan(math.radians(skew_x))
        tan_y = math.tan(math.radians(skew_y))
        x1, y1, x2, y2 = self.x1, self.y1, self.x2, self.y2
        self.x1 = round3(x1 + y1 * tan_x)
        self.y1 = round3(y1 + x1 * tan_y)
        self.x2 = round3(x2 + y2 * tan_x)
        self.y2 = round3(y2 + x2 * tan_y)

    def apply_matrix(self, matrix: Matrix):
        start = apply_matrix_to_point(matrix, Point(self.x1, self.y1))
        end = apply_matrix_to_point(matrix, Point(self.x2, self.y2))
        self.x1, self.y1 = round3(start.x), round3(start.y)
        self.x2, self.y2 = round3(end.x), round3(end.y)

    def _render_element(self) -> dict:
        attrs = {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}
        attrs.update(self.style.to_attributes())
        return _element("line", attrs)


class _BoxShape(ShapeBase):
    """Shapes anchored at a top-left corner with a width and height."""
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ("x", "y", "width", "height")

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def get_base_bounds(self) -> Bounds:
        return Bounds(self.x, self.y, self.width, self.height)

    def move(self, dx: float, dy: float):
        self.x = round3(self.x + dx)
        self.y = round3(self.y + dy)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        width = self.width * abs(scale_x)
        height = self.height * abs(scale_y)
        x = self.x * scale_x + translate_x
        y = self.y * scale_y + translate_y
        # A mirrored box keeps a positive size; its anchor moves to the far corner
        if scale_x < 0:
            x -= width
        if scale_y < 0:
            y -= height
        self.x, self.y = round3(x), round3(y)
        self.width, self.height = round3(width), round3(height)


class Rectangle(_BoxShape):
    type: Literal["rectangle"] = "rectangle"

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        if not self.get_base_bounds().contains(point, tolerance):
            return False
        if not self.style.fill_none:
            return True
        # Unfilled rectangles are only hit near their outline
        inner = Bounds(
            self.x + tolerance,
            self.y + tolerance,
            max(0.0, self.width - 2 * tolerance),
            max(0.0, self.height - 2 * tolerance),
        )
        if inner.width == 0 or inner.height == 0:
            return True
        return not (inner.x < point.x < inner.right and inner.y < point.y < inner.bottom)

    def _render_element(self) -> dict:
        attrs = {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
        attrs.update(self.style.to_attributes())
        return _element("rect", attrs)


class Image(_BoxShape):
    type: Literal["image"] = "image"

    href: str = ""
    preserve_aspect_ratio: str = "xMidYMid meet"

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        return self.get_base_bounds().contains(point, tolerance)

    def _render_element(self) -> dict:
        attrs = {
            "x": self.x, "y": self.y, "width": self.width, "height": self.height,
            "href": self.href, "preserveAspectRatio": self.preserve_aspect_ratio,
            "opacity": self.style.opacity,
        }
        return _element("image", attrs)


class Ellipse(ShapeBase):
    type: Literal["ellipse"] = "ellipse"
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ("cx", "cy", "rx", "ry")

    cx: float = 0.0
    cy: float = 0.0
    rx: float = 0.0
    ry: float = 0.0

    def get_base_bounds(self) -> Bounds:
        return Bounds(self.cx - self.rx, self.cy - self.ry, self.rx * 2, self.ry * 2)

    def get_rotation_center(self) -> Point:
        return Point(self.cx, self.cy)

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        dx = point.x - self.cx
        dy = point.y - self.cy
        outer_rx = self.rx + tolerance
        outer_ry = self.ry + tolerance
        if outer_rx <= 0 or outer_ry <= 0:
            return False
        outer = (dx * dx) / (outer_rx * outer_rx) + (dy * dy) / (outer_ry * outer_ry)
        if outer > 1:
            return False
        if not self.style.fill_none:
            return True
        inner_rx = self.rx - tolerance
        inner_ry = self.ry - tolerance
        if inner_rx <= 0 or inner_ry <= 0:
            return True
        inner = (dx * dx) / (inner_rx * inner_rx) + (dy * dy) / (inner_ry * inner_ry)
        return inner >= 1

    def move(self, dx: float, dy: float):
        self.cx = round3(self.cx + dx)
        self.cy = round3(self.cy + dy)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.cx = round3(self.cx * scale_x + translate_x)
        self.cy = round3(self.cy * scale_y + translate_y)
        self.rx = round3(self.rx * abs(scale_x))
        self.ry = round3(self.ry * abs(scale_y))

    def _render_element(self) -> dict:
        attrs = {"cx": self.cx, "cy": self.cy, "rx": self.rx, "ry": self.ry}
        attrs.update(self.style.to_attributes())
        return _element("ellipse", attrs)


class Text(ShapeBase):
    """
    Single or multi-line text anchored at (x, y).

    Without renderer measurements the bounds are approximated from the
    font size: each character is 0.6em wide and each line is
    line_height em tall.
    """
    type: Literal["text"] = "text"
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ("x", "y", "font_size")

    x: float = 0.0
    y: float = 0.0
    content: str = ""
    font_size: float = 16.0
    font_family: str = "Arial"
    font_weight: str = "normal"
    text_anchor: TextAnchor = TextAnchor.START
    dominant_baseline: str = "auto"
    line_height: float = 1.2

    _measured_bounds: Optional[Bounds] = PrivateAttr(default=None)

    def set_measured_bounds(self, bounds: Optional[Bounds]):
        """Record bounds measured by a renderer; they take precedence over the estimate."""
        self._measured_bounds = bounds

    def restore_state(self, state: dict[str, float]):
        super().restore_state(state)
        # Measurements taken at the old position or size are stale
        self._measured_bounds = None

    def get_base_bounds(self) -> Bounds:
        if self._measured_bounds is not None:
            return self._measured_bounds
        lines = self.content.split("\n")
        width = max(len(line) for line in lines) * self.font_size * 0.6
        height = len(lines) * self.font_size * self.line_height
        x = self.x
        if self.text_anchor == TextAnchor.MIDDLE.value:
            x -= width / 2
        elif self.text_anchor == TextAnchor.END.value:
            x -= width
        return Bounds(x, self.y, width, height)

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        return self.get_base_bounds().contains(point, tolerance)

    def move(self, dx: float, dy: float):
        self.x = round3(self.x + dx)
        self.y = round3(self.y + dy)
        if self._measured_bounds is not None:
            b = self._measured_bounds
            self._measured_bounds = Bounds(b.x + dx, b.y + dy, b.width, b.height)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.x = round3(self.x * scale_x + translate_x)
        self.y = round3(self.y * scale_y + translate_y)
        self.font_size = round3(self.font_size * (abs(scale_x) + abs(scale_y)) / 2)
        self._measured_bounds = None

    def _render_element(self) -> dict:
        attrs = {
            "x": self.x, "y": self.y,
            "font-size": self.font_size,
            "font-family": self.font_family,
            "font-weight": self.font_weight,
            "text-anchor": self.text_anchor,
            "dominant-baseline": self.dominant_baseline,
        }
        attrs.update(self.style.to_attributes())
        lines = self.content.split("\n")
        if len(lines) == 1:
            return _element("text", attrs, text=self.content)
        tspans = [
            _element("tspan", {"x": self.x, "dy": 0 if i == 0 else self.font_size * self.line_height}, text=line)
            for i, line in enumerate(lines)
        ]
        return _element("text", attrs, tspans)


class _PointShape(ShapeBase):
    """Shapes defined by a list of vertices."""
    points: list[Point] = Field(default_factory=list)

    def get_base_bounds(self) -> Bounds:
        return points_to_bounds(self.points)

    def move(self, dx: float, dy: float):
        self.points = [Point(round3(p.x + dx), round3(p.y + dy)) for p in self.points]

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.points = [
            Point(round3(p.x * scale_x + translate_x), round3(p.y * scale_y + translate_y))
            for p in self.points
        ]

    def apply_skew(self, skew_x: float, skew_y: float):
        tan_x = math.tan(math.radians(skew_x))
        tan_y = math.tan(math.radians(skew_y))
        self.points = [Point(round3(p.x + p.y * tan_x), round3(p.y + p.x * tan_y)) for p in self.points]

    def apply_matrix(self, matrix: Matrix):
        mapped = (apply_matrix_to_point(matrix, p) for p in self.points)
        self.points = [Point(round3(p.x), round3(p.y)) for p in mapped]

    # --- Vertex editing ---

    def set_vertex(self, index: int, point: Point):
        self._check_index(index)
        self.points[index] = Point(round3(point.x), round3(point.y))

    def add_vertex(self, point: Point):
        self.points.append(Point(round3(point.x), round3(point.y)))

    def insert_vertex(self, index: int, point: Point):
        if index < 0 or index > len(self.points):
            raise IndexError(f"Vertex index {index} out of range")
        self.points.insert(index, Point(round3(point.x), round3(point.y)))

    def remove_vertex(self, index: int) -> Point:
        self._check_index(index)
        return self.points.pop(index)

    def _check_index(self, index: int):
        if index < 0 or index >= len(self.points):
            raise IndexError(f"Vertex index {index} out of range")


class Polygon(_PointShape):
    type: Literal["polygon"] = "polygon"

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        if len(self.points) < 3:
            # Degenerate polygons still hit along what is drawn
            return polyline_distance(point, self.points) <= tolerance
        if not self.style.fill_none and point_in_polygon(point, self.points):
            return True
        return polyline_distance(point, self.points, closed=True) <= tolerance

    def _render_element(self) -> dict:
        attrs = {"points": _points_attr(self.points)}
        attrs.update(self.style.to_attributes())
        return _element("polygon", attrs)


class Polyline(_PointShape):
    type: Literal["polyline"] = "polyline"

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        return polyline_distance(point, self.points) <= tolerance

    def _render_element(self) -> dict:
        attrs = {"points": _points_attr(self.points)}
        attrs.update(self.style.to_attributes())
        return _element("polyline", attrs)


class Path(ShapeBase):
    """Free-form path of absolute M/L/C/Q/A/Z commands."""
    type: Literal["path"] = "path"

    commands: list[PathCommand] = Field(default_factory=list)

    # Curve sampling resolution for hit tests and bounds; Document sets it
    # from EditorConfig.curve_sample_steps
    _sample_steps: int = PrivateAttr(default=DEFAULT_CONFIG.curve_sample_steps)

    def set_sample_steps(self, steps: int):
        self._sample_steps = steps

    @classmethod
    def from_path_data(cls, data: str, **kwargs) -> "Path":
        return cls(commands=parse_path_data(data), **kwargs)

    def to_path_data(self) -> str:
        return format_path_data(self.commands)

    def get_base_bounds(self) -> Bounds:
        return points_to_bounds(
            p for points, _ in flatten_path(self.commands, self._sample_steps) for p in points
        )

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        for points, closed in flatten_path(self.commands, self._sample_steps):
            if polyline_distance(point, points) <= tolerance:
                return True
            if closed and not self.style.fill_none and point_in_polygon(point, points):
                return True
        return False

    def move(self, dx: float, dy: float):
        self.commands = map_points(self.commands, lambda p: Point(p.x + dx, p.y + dy))

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.commands = map_points(
            self.commands,
            lambda p: Point(p.x * scale_x + translate_x, p.y * scale_y + translate_y),
            scale_x, scale_y,
        )

    def apply_skew(self, skew_x: float, skew_y: float):
        tan_x = math.tan(math.radians(skew_x))
        tan_y = math.tan(math.radians(skew_y))
        self.commands = map_points(self.commands, lambda p: Point(p.x + p.y * tan_x, p.y + p.x * tan_y))

    def apply_matrix(self, matrix: Matrix):
        parts = decompose_matrix(matrix)
        self.commands = map_points(
            self.commands, lambda p: apply_matrix_to_point(matrix, p),
            parts.scale_x, parts.scale_y,
        )

    def _render_element(self) -> dict:
        attrs = {"d": self.to_path_data()}
        attrs.update(self.style.to_attributes())
        return _element("path", attrs)


# --- Diagram shapes ---

class Node(ShapeBase):
    """A labelled ellipse that edges attach to."""
    type: Literal["node"] = "node"
    RESIZE_FIELDS: ClassVar[tuple[str, ...]] = ("cx", "cy", "rx", "ry")

    cx: float = 0.0
    cy: float = 0.0
    rx: float = 30.0
    ry: float = 30.0
    label: str = ""
    font_size: float = 14.0
    font_family: str = "Arial"

    def get_base_bounds(self) -> Bounds:
        return Bounds(self.cx - self.rx, self.cy - self.ry, self.rx * 2, self.ry * 2)

    def get_rotation_center(self) -> Point:
        return Point(self.cx, self.cy)

    def get_connection_point(self, target_x: float, target_y: float) -> Point:
        """Point on the node outline facing (target_x, target_y)."""
        return connection_point(self, Point(target_x, target_y))

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        dx = point.x - self.cx
        dy = point.y - self.cy
        rx = self.rx + tolerance
        ry = self.ry + tolerance
        if rx <= 0 or ry <= 0:
            return False
        return (dx * dx) / (rx * rx) + (dy * dy) / (ry * ry) <= 1

    def move(self, dx: float, dy: float):
        self.cx = round3(self.cx + dx)
        self.cy = round3(self.cy + dy)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        self.cx = round3(self.cx * scale_x + translate_x)
        self.cy = round3(self.cy * scale_y + translate_y)
        self.rx = round3(self.rx * abs(scale_x))
        self.ry = round3(self.ry * abs(scale_y))

    def _render_element(self) -> dict:
        ellipse_attrs = {"cx": self.cx, "cy": self.cy, "rx": self.rx, "ry": self.ry}
        ellipse_attrs.update(self.style.to_attributes())
        label_attrs = {
            "x": self.cx, "y": self.cy,
            "font-size": self.font_size,
            "font-family": self.font_family,
            "text-anchor": "middle",
            "dominant-baseline": "central",
        }
        return _element("g", {"data-type": "node"}, [
            _element("ellipse", ellipse_attrs),
            _element("text", label_attrs, text=self.label),
        ])


class Edge(ShapeBase):
    """
    A connector between two registered nodes.

    Edges store only their endpoint node ids and routing parameters. Their
    geometry is recomputed from the live nodes each time it is needed, so
    an edge must be bound to a GraphRegistry (Document does this when the
    edge is added) before it has a route. An edge whose nodes cannot be
    resolved renders as an empty path and is never hit.
    """
    type: Literal["edge"] = "edge"

    source_node_id: str
    target_node_id: str
    direction: EdgeDirection = EdgeDirection.NONE
    curve_offset: float = 0.0
    is_self_loop: bool = False
    self_loop_angle: float = 0.0  # radians
    label: str = ""
    line_type: EdgeLineType = EdgeLineType.STRAIGHT
    curve_amount: float = 0.0

    _graph: Optional["GraphRegistry"] = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _default_line_type(cls, data: Any) -> Any:
        """Loops and offset edges default to the curve line type."""
        if isinstance(data, dict) and "line_type" not in data:
            if data.get("is_self_loop") or data.get("curve_offset"):
                data = {**data, "line_type": EdgeLineType.CURVE.value}
        return data

    @field_validator("rotation")
    @classmethod
    def _no_rotation(cls, value: float) -> float:
        return 0.0

    @classmethod
    def create(
        cls,
        graph: "GraphRegistry",
        source_node_id: str,
        target_node_id: str,
        direction: EdgeDirection | str = EdgeDirection.NONE,
        **kwargs,
    ) -> "Edge":
        """
        Build a new edge with its parallel offset or loop angle assigned.

        Must be called before the edge is registered so the offset accounts
        only for the edges that already exist between the two nodes.
        """
        is_self_loop = source_node_id == target_node_id
        curve_offset = 0.0 if is_self_loop else graph.calculate_parallel_offset(source_node_id, target_node_id)
        self_loop_angle = graph.get_next_self_loop_angle(source_node_id) if is_self_loop else 0.0
        line_type = EdgeLineType.CURVE if is_self_loop or curve_offset != 0 else EdgeLineType.STRAIGHT
        edge = cls(
            source_node_id=source_node_id,
            target_node_id=target_node_id,
            direction=direction,
            curve_offset=curve_offset,
            is_self_loop=is_self_loop,
            self_loop_angle=self_loop_angle,
            line_type=line_type,
            curve_amount=curve_offset,
            **kwargs,
        )
        edge.bind(graph)
        return edge

    def bind(self, graph: Optional["GraphRegistry"]):
        self._graph = graph

    @property
    def graph(self) -> Optional["GraphRegistry"]:
        return self._graph

    @property
    def effective_offset(self) -> float:
        """Bow actually drawn: the user's curve amount when set, else the parallel offset."""
        if self.line_type == EdgeLineType.STRAIGHT.value:
            return 0.0
        if self.curve_amount != 0:
            return self.curve_amount
        return self.curve_offset

    # --- Routing ---

    def get_route(self) -> Optional[EdgeRoute]:
        if self._graph is None:
            return None
        source = self._graph.get_node_shape(self.source_node_id)
        target = self._graph.get_node_shape(self.target_node_id)
        config = self._graph.config
        return route_edge(
            source, target,
            offset=self.effective_offset,
            is_self_loop=self.is_self_loop,
            self_loop_angle=self.self_loop_angle,
            spread_deg=config.self_loop_spread_deg,
            scale=config.self_loop_scale,
        )

    def get_path_data(self) -> str:
        route = self.get_route()
        return route.to_path_data() if route is not None else ""

    def get_base_bounds(self) -> Bounds:
        route = self.get_route()
        return route.bounds() if route is not None else Bounds.empty()

    def get_bounds(self) -> Bounds:
        return self.get_base_bounds()

    def hit_test(self, point: Point, tolerance: float = DEFAULT_HIT_TOLERANCE) -> bool:
        route = self.get_route()
        if route is None:
            return False
        steps = self._graph.config.curve_sample_steps if self._graph is not None else DEFAULT_CONFIG.curve_sample_steps
        return route.distance_to(point, steps) <= tolerance

    # --- Mutation ---

    def move(self, dx: float, dy: float):
        # Geometry follows the endpoint nodes
        pass

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        pass

    def apply_matrix(self, matrix: Matrix):
        pass

    def set_rotation(self, angle: float):
        logger.debug("Ignoring rotation %.3f on edge %s", angle, self.id)

    def set_direction(self, direction: EdgeDirection | str):
        self.direction = EdgeDirection(direction).value

    def set_curve_amount(self, amount: float):
        self.curve_amount = amount

    def set_line_type(self, line_type: EdgeLineType | str):
        line_type = EdgeLineType(line_type).value
        if self.is_self_loop and line_type == EdgeLineType.STRAIGHT.value:
            logger.warning("Self-loop edge %s cannot use the straight line type", self.id)
            return
        self.line_type = line_type

    def clone(self) -> "Edge":
        copy = super().clone()
        copy.bind(self._graph)
        return copy

    def _render_element(self) -> dict:
        path_attrs: dict[str, Any] = {"d": self.get_path_data()}
        path_attrs.update(self.style.to_attributes())
        path_attrs["fill"] = "none"
        children = [_element("path", path_attrs)]
        route = self.get_route()
        if route is not None:
            arrow = route.arrow_position(self.direction)
            if arrow is not None:
                tip, angle = arrow
                left = Point(tip.x - ARROW_SIZE * math.cos(angle - math.pi / 6),
                             tip.y - ARROW_SIZE * math.sin(angle - math.pi / 6))
                right = Point(tip.x - ARROW_SIZE * math.cos(angle + math.pi / 6),
                              tip.y - ARROW_SIZE * math.sin(angle + math.pi / 6))
                children.append(_element("polygon", {
                    "points": _points_attr([Point(round3(p.x), round3(p.y)) for p in (tip, left, right)]),
                    "fill": self.style.stroke,
                }))
            if self.label:
                mid = route.point_at(0.5)
                children.append(_element("text", {
                    "x": round3(mid.x), "y": round3(mid.y), "text-anchor": "middle",
                }, text=self.label))
        return _element("g", {
            "data-type": "edge",
            "data-source": self.source_node_id,
            "data-target": self.target_node_id,
        }, children)


# --- Containers ---

class Group(ShapeBase):
    """Ordered container; geometry operations propagate to every child."""
    type: Literal["group"] = "group"

    children: list["AnyShape"] = Field(default_factory=list)

    def get_base_bounds(self) -> Bounds:
        if not self.children:
            return Bounds.empty()
        bounds = self.children[0].get_bounds()
        for child in self.children[1:]:
            bounds = bounds.union(child.get_bounds())
        return bounds

    def _hit_test_local(self, point: Point, tolerance: float) -> bool:
        if not self.get_base_bounds().contains(point, tolerance):
            return False
        return any(child.hit_test(point, tolerance) for child in self.children)

    def move(self, dx: float, dy: float):
        for child in self.children:
            child.move(dx, dy)

    def apply_transform(self, translate_x, translate_y, scale_x, scale_y):
        for child in self.children:
            child.apply_transform(translate_x, translate_y, scale_x, scale_y)

    def apply_matrix(self, matrix: Matrix):
        for child in self.children:
            child.apply_matrix(matrix)

    def iter_descendants(self):
        for child in self.children:
            yield child
            if isinstance(child, Group):
                yield from child.iter_descendants()

    def clone(self) -> "Group":
        return Group(
            style=self.get_style(),
            rotation=self.rotation,
            class_name=self.class_name,
            children=[child.clone() for child in self.children],
        )

    def _render_element(self) -> dict:
        return _element("g", {"opacity": self.style.opacity}, [c.render() for c in self.children])


AnyShape = Annotated[
    Union[Line, Rectangle, Ellipse, Text, Polygon, Polyline, Path, Image, Node, Edge, Group],
    Field(discriminator="type"),
]

Group.model_rebuild()

_shape_adapter: TypeAdapter = TypeAdapter(AnyShape)


def shape_from_dict(data: dict, graph: Optional["GraphRegistry"] = None) -> "AnyShape":
    """
    Rebuild a shape (and any nested children) from serialize() output.

    Edges are bound to `graph` when one is given.

    Raises:
        pydantic.ValidationError: If the data does not describe a known shape
    """
    shape = _shape_adapter.validate_python(data)
    if graph is not None:
        if isinstance(shape, Edge):
            shape.bind(graph)
        elif isinstance(shape, Group):
            for child in shape.iter_descendants():
                if isinstance(child, Edge):
                    child.bind(graph)
    return shape
