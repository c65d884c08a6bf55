"""
Geometry kernel for the drawing core.

Provides the value types and pure functions every shape builds on:
- Point and Bounds value types
- Rotation normalization and point rotation about a pivot
- Axis-aligned bounds of rotated boxes
- 2x3 affine matrices, decomposition and SVG transform parsing
- Bezier evaluation and distance helpers used for hit testing

All functions are pure; nothing in this module mutates its arguments.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)


PRECISION = 3


def round3(value: float) -> float:
    """Round to three decimals, halves rounding up like the editor UI does."""
    result = math.floor(value * 1000 + 0.5) / 1000
    # Avoid surfacing -0.0 in serialized output
    return result + 0.0


@dataclass(frozen=True)
class Point:
    """An immutable 2-D point."""
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def round_point(point: Point) -> Point:
    return Point(round3(point.x), round3(point.y))


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box (x, y is the top-left corner)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def empty(cls) -> "Bounds":
        return cls(0.0, 0.0, 0.0, 0.0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def is_empty(self) -> bool:
        return self.width == 0 and self.height == 0

    def contains(self, point: Point, tolerance: float = 0.0) -> bool:
        """Check whether the point lies inside the box grown by tolerance."""
        return (
            self.x - tolerance <= point.x <= self.right + tolerance
            and self.y - tolerance <= point.y <= self.bottom + tolerance
        )

    def expanded(self, amount: float) -> "Bounds":
        return Bounds(
            self.x - amount, self.y - amount,
            self.width + 2 * amount, self.height + 2 * amount,
        )

    def union(self, other: "Bounds") -> "Bounds":
        min_x = min(self.x, other.x)
        min_y = min(self.y, other.y)
        max_x = max(self.right, other.right)
        max_y = max(self.bottom, other.bottom)
        return Bounds(min_x, min_y, max_x - min_x, max_y - min_y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# --- Rotation ---

def normalize_rotation(angle: float) -> float:
    """Normalize an angle in degrees into [0, 360)."""
    normalized = angle % 360.0
    if normalized >= 360.0:
        # Tiny negative inputs can round up to exactly 360
        normalized = 0.0
    return normalized + 0.0


def rotate_point(point: Point, pivot: Point, angle_deg: float) -> Point:
    """Rotate point about pivot by angle_deg (clockwise in screen space)."""
    if angle_deg == 0:
        return point
    rad = math.radians(angle_deg)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    dx = point.x - pivot.x
    dy = point.y - pivot.y
    return Point(
        pivot.x + dx * cos_a - dy * sin_a,
        pivot.y + dx * sin_a + dy * cos_a,
    )


def get_rotated_bounds(bounds: Bounds, angle_deg: float, pivot: Point | None = None) -> Bounds:
    """
    Axis-aligned bounds of a box rotated about a pivot.

    Args:
        bounds: Unrotated bounds
        angle_deg: Rotation in degrees
        pivot: Rotation center (defaults to the bounds center)

    Returns:
        Bounds enclosing all four rotated corners
    """
    if normalize_rotation(angle_deg) == 0:
        return bounds
    if pivot is None:
        pivot = bounds.center
    corners = [
        Point(bounds.x, bounds.y),
        Point(bounds.right, bounds.y),
        Point(bounds.right, bounds.bottom),
        Point(bounds.x, bounds.bottom),
    ]
    return points_to_bounds(rotate_point(c, pivot, angle_deg) for c in corners)


def points_to_bounds(points: Iterable[Point]) -> Bounds:
    """Bounding box of a point cloud; empty input yields empty bounds."""
    xs: list[float] = []
    ys: list[float] = []
    for p in points:
        xs.append(p.x)
        ys.append(p.y)
    if not xs:
        return Bounds.empty()
    min_x, min_y = min(xs), min(ys)
    return Bounds(min_x, min_y, max(xs) - min_x, max(ys) - min_y)


# --- Distance helpers ---

def distance_to_segment(point: Point, start: Point, end: Point) -> float:
    """Shortest distance from point to the segment start-end."""
    dx = end.x - start.x
    dy = end.y - start.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return point.distance_to(start)
    t = ((point.x - start.x) * dx + (point.y - start.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(point.x - (start.x + t * dx), point.y - (start.y + t * dy))


def polyline_distance(point: Point, points: Sequence[Point], closed: bool = False) -> float:
    """Minimum distance from point to a chain of segments."""
    if not points:
        return math.inf
    if len(points) == 1:
        return point.distance_to(points[0])
    best = math.inf
    for i in range(len(points) - 1):
        best = min(best, distance_to_segment(point, points[i], points[i + 1]))
    if closed and len(points) > 2:
        best = min(best, distance_to_segment(point, points[-1], points[0]))
    return best


def point_in_polygon(point: Point, vertices: Sequence[Point]) -> bool:
    """Ray casting inside test; fewer than three vertices is never inside."""
    if len(vertices) < 3:
        return False
    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        vi, vj = vertices[i], vertices[j]
        if (vi.y > point.y) != (vj.y > point.y):
            x_cross = (vj.x - vi.x) * (point.y - vi.y) / (vj.y - vi.y) + vi.x
            if point.x < x_cross:
                inside = not inside
        j = i
    return inside


# --- Bezier evaluation ---

def quadratic_bezier_point(p0: Point, p1: Point, p2: Point, t: float) -> Point:
    mt = 1 - t
    return Point(
        mt * mt * p0.x + 2 * mt * t * p1.x + t * t * p2.x,
        mt * mt * p0.y + 2 * mt * t * p1.y + t * t * p2.y,
    )


def cubic_bezier_point(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    mt = 1 - t
    a = mt * mt * mt
    b = 3 * mt * mt * t
    c = 3 * mt * t * t
    d = t * t * t
    return Point(
        a * p0.x + b * p1.x + c * p2.x + d * p3.x,
        a * p0.y + b * p1.y + c * p2.y + d * p3.y,
    )


# --- Affine matrices ---

@dataclass(frozen=True)
class Matrix:
    """
    2x3 affine matrix in SVG order.

    Maps (x, y) to (a*x + c*y + e, b*x + d*y + f).
    """
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> "Matrix":
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float = 0.0) -> "Matrix":
        return cls(e=tx, f=ty)

    @classmethod
    def scaling(cls, sx: float, sy: float | None = None) -> "Matrix":
        return cls(a=sx, d=sx if sy is None else sy)

    @classmethod
    def rotation(cls, angle_deg: float) -> "Matrix":
        rad = math.radians(angle_deg)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        return cls(a=cos_a, b=sin_a, c=-sin_a, d=cos_a)

    @classmethod
    def skewing(cls, skew_x_deg: float = 0.0, skew_y_deg: float = 0.0) -> "Matrix":
        return cls(
            b=math.tan(math.radians(skew_y_deg)),
            c=math.tan(math.radians(skew_x_deg)),
        )

    def multiply(self, other: "Matrix") -> "Matrix":
        """Return self x other (other is applied first)."""
        return Matrix(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def is_identity(self) -> bool:
        return self == Matrix()


def apply_matrix_to_point(matrix: Matrix, point: Point) -> Point:
    return Point(
        matrix.a * point.x + matrix.c * point.y + matrix.e,
        matrix.b * point.x + matrix.d * point.y + matrix.f,
    )


@dataclass(frozen=True)
class MatrixDecomposition:
    """Translate, scale, rotation and skew components of an affine matrix."""
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0
    skew_x: float = 0.0
    skew_y: float = 0.0

    @property
    def has_skew(self) -> bool:
        return abs(self.skew_x) > 1e-9 or abs(self.skew_y) > 1e-9


def decompose_matrix(matrix: Matrix) -> MatrixDecomposition:
    """
    Decompose an affine matrix as translate * rotate * scale * skewX.

    The rotation is returned in degrees normalized to [0, 360). A reflection
    is carried by a negative scale_y. Degenerate matrices (zero first column)
    decompose to zero scale and no rotation.
    """
    a, b, c, d = matrix.a, matrix.b, matrix.c, matrix.d
    scale_x = math.hypot(a, b)
    if scale_x == 0:
        return MatrixDecomposition(
            translate_x=matrix.e, translate_y=matrix.f,
            scale_x=0.0, scale_y=math.hypot(c, d),
        )
    rotation = math.degrees(math.atan2(b, a))
    determinant = a * d - b * c
    scale_y = determinant / scale_x
    skew_x = math.degrees(math.atan((a * c + b * d) / (scale_x * scale_x)))
    return MatrixDecomposition(
        translate_x=matrix.e,
        translate_y=matrix.f,
        scale_x=scale_x,
        scale_y=scale_y,
        rotation=normalize_rotation(rotation),
        skew_x=skew_x,
        skew_y=0.0,
    )


# --- SVG transform attribute parsing ---

_TRANSFORM_RE = re.compile(r"(\w+)\s*\(([^)]*)\)")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


@dataclass(frozen=True)
class TranslateScale:
    """The translate/scale part of an SVG transform attribute."""
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    def is_identity(self) -> bool:
        return self == TranslateScale()


def parse_transform(value: str | None) -> TranslateScale:
    """
    Parse the translate and scale functions of an SVG transform attribute.

    Functions are composed left to right. rotate, skewX, skewY and matrix
    are not representable here and are skipped with a warning; callers that
    need them should build a Matrix instead.

    Args:
        value: Raw transform attribute (may be None or empty)

    Returns:
        Accumulated TranslateScale
    """
    result = TranslateScale()
    if not value:
        return result
    for name, raw_args in _TRANSFORM_RE.findall(value):
        args = [float(n) for n in _NUMBER_RE.findall(raw_args)]
        if name == "translate" and args:
            step = TranslateScale(translate_x=args[0], translate_y=args[1] if len(args) > 1 else 0.0)
        elif name == "scale" and args:
            step = TranslateScale(scale_x=args[0], scale_y=args[1] if len(args) > 1 else args[0])
        else:
            logger.warning("Ignoring unsupported transform function %s(%s)", name, raw_args)
            continue
        result = combine_transforms(result, step)
    return result


def combine_transforms(first: TranslateScale, second: TranslateScale) -> TranslateScale:
    """Compose two transforms; second is nested inside first."""
    return TranslateScale(
        translate_x=first.translate_x + second.translate_x * first.scale_x,
        translate_y=first.translate_y + second.translate_y * first.scale_y,
        scale_x=first.scale_x * second.scale_x,
        scale_y=first.scale_y * second.scale_y,
    )
