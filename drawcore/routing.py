"""
Edge routing.

Edges carry no coordinates of their own. Their geometry is derived from the
current position and radii of the two endpoint nodes. route_edge() is the
single function that computes it; rendering, hit testing and bounds all go
through the EdgeRoute it returns.

Three route kinds:
- straight: boundary point to boundary point
- quadratic: parallel edges bowed sideways by the curve offset
- cubic: self-loops leaving and re-entering the same node
"""

import math
from dataclasses import dataclass
from typing import Literal, Protocol

from .geometry import (
    Bounds, Point, cubic_bezier_point, distance_to_segment,
    points_to_bounds, quadratic_bezier_point, round3,
)

RouteKind = Literal["straight", "quadratic", "cubic"]

DEFAULT_SELF_LOOP_SPREAD_DEG = 30.0
DEFAULT_SELF_LOOP_SCALE = 1.5


class EllipseNode(Protocol):
    """Anything with an elliptical footprint an edge can attach to."""
    cx: float
    cy: float
    rx: float
    ry: float


def connection_point(node: EllipseNode, toward: Point) -> Point:
    """Point on the node's ellipse boundary facing `toward`."""
    angle = math.atan2(toward.y - node.cy, toward.x - node.cx)
    return Point(
        node.cx + node.rx * math.cos(angle),
        node.cy + node.ry * math.sin(angle),
    )


@dataclass(frozen=True)
class EdgeRoute:
    """
    Derived edge geometry.

    points holds [start, end] for straight routes, [start, control, end] for
    quadratic routes and [start, control1, control2, end] for cubic routes.
    """
    kind: RouteKind
    points: tuple[Point, ...]

    @property
    def start(self) -> Point:
        return self.points[0]

    @property
    def end(self) -> Point:
        return self.points[-1]

    def point_at(self, t: float) -> Point:
        p = self.points
        if self.kind == "quadratic":
            return quadratic_bezier_point(p[0], p[1], p[2], t)
        if self.kind == "cubic":
            return cubic_bezier_point(p[0], p[1], p[2], p[3], t)
        return Point(p[0].x + (p[1].x - p[0].x) * t, p[0].y + (p[1].y - p[0].y) * t)

    def sample(self, steps: int = 20) -> list[Point]:
        """Points along the route, including both endpoints."""
        if self.kind == "straight":
            return [self.start, self.end]
        return [self.point_at(i / steps) for i in range(steps + 1)]

    def distance_to(self, point: Point, steps: int = 20) -> float:
        samples = self.sample(steps)
        return min(
            distance_to_segment(point, samples[i], samples[i + 1])
            for i in range(len(samples) - 1)
        )

    def bounds(self) -> Bounds:
        """Bounds of the route's defining points (control points included)."""
        return points_to_bounds(self.points)

    def to_path_data(self) -> str:
        def fmt(p: Point) -> str:
            return f"{round3(p.x):g} {round3(p.y):g}"

        p = self.points
        if self.kind == "quadratic":
            return f"M {fmt(p[0])} Q {fmt(p[1])} {fmt(p[2])}"
        if self.kind == "cubic":
            return f"M {fmt(p[0])} C {fmt(p[1])} {fmt(p[2])} {fmt(p[3])}"
        return f"M {fmt(p[0])} L {fmt(p[1])}"

    def arrow_position(self, direction: str) -> tuple[Point, float] | None:
        """
        Tip position and heading (radians) of the direction arrow.

        Returns None when the edge is undirected.
        """
        if direction == "forward":
            tip, prev = self.points[-1], self.points[-2]
        elif direction == "backward":
            tip, prev = self.points[0], self.points[1]
        else:
            return None
        return tip, math.atan2(tip.y - prev.y, tip.x - prev.x)


def straight_route(source: EllipseNode, target: EllipseNode) -> EdgeRoute:
    start = connection_point(source, Point(target.cx, target.cy))
    end = connection_point(target, Point(source.cx, source.cy))
    return EdgeRoute("straight", (start, end))


def curved_route(source: EllipseNode, target: EllipseNode, offset: float) -> EdgeRoute:
    """Quadratic route bowed perpendicular to the chord by `offset`."""
    straight = straight_route(source, target)
    start, end = straight.start, straight.end
    dx = end.x - start.x
    dy = end.y - start.y
    length = math.hypot(dx, dy)
    if length == 0:
        return straight
    mid = Point((start.x + end.x) / 2, (start.y + end.y) / 2)
    control = Point(mid.x + (-dy / length) * offset, mid.y + (dx / length) * offset)
    # Re-aim both endpoints at the control point so the curve leaves the
    # boundary in the direction it is actually heading
    new_start = connection_point(source, control)
    new_end = connection_point(target, control)
    return EdgeRoute("quadratic", (new_start, control, new_end))


def self_loop_route(
    node: EllipseNode,
    angle: float,
    spread_deg: float = DEFAULT_SELF_LOOP_SPREAD_DEG,
    scale: float = DEFAULT_SELF_LOOP_SCALE,
) -> EdgeRoute:
    """Cubic loop centred on `angle` (radians) around a single node."""
    loop_size = max(node.rx, node.ry) * scale
    spread = math.radians(spread_deg)
    start_angle = angle - spread
    end_angle = angle + spread
    start = Point(node.cx + node.rx * math.cos(start_angle), node.cy + node.ry * math.sin(start_angle))
    end = Point(node.cx + node.rx * math.cos(end_angle), node.cy + node.ry * math.sin(end_angle))
    c1 = Point(
        node.cx + (node.rx + loop_size) * math.cos(start_angle),
        node.cy + (node.ry + loop_size) * math.sin(start_angle),
    )
    c2 = Point(
        node.cx + (node.rx + loop_size) * math.cos(end_angle),
        node.cy + (node.ry + loop_size) * math.sin(end_angle),
    )
    return EdgeRoute("cubic", (start, c1, c2, end))


def route_edge(
    source: EllipseNode | None,
    target: EllipseNode | None,
    *,
    offset: float = 0.0,
    is_self_loop: bool = False,
    self_loop_angle: float = 0.0,
    spread_deg: float = DEFAULT_SELF_LOOP_SPREAD_DEG,
    scale: float = DEFAULT_SELF_LOOP_SCALE,
) -> EdgeRoute | None:
    """
    Compute the current route of an edge.

    Args:
        source: Source node, or None if it cannot be resolved
        target: Target node, or None if it cannot be resolved
        offset: Perpendicular bow for parallel edges (0 = straight)
        is_self_loop: Route as a loop on the source node
        self_loop_angle: Loop direction in radians
        spread_deg: Half-angle between loop exit and entry points
        scale: Loop size relative to the larger node radius

    Returns:
        EdgeRoute, or None when an endpoint is missing
    """
    if source is None or target is None:
        return None
    if is_self_loop:
        return self_loop_route(source, self_loop_angle, spread_deg, scale)
    if offset != 0:
        return curved_route(source, target, offset)
    return straight_route(source, target)
