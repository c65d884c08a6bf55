"""
Layout algorithms for diagram nodes and shape arrangement.

Graph layouts compute new node centre positions:
- Grid: Simple grid arrangement
- Tree: Hierarchical layout based on edge directions
- Force: Force-directed layout using spring physics
- Circle: Nodes evenly spaced on a circle
- Concentric: Rings by node degree, busiest nodes in the middle

All graph layouts are pure: they take node ids, (source, target) edge pairs
and return {node_id: (cx, cy)}. ApplyLayoutCommand applies the result.

Arrangement helpers (alignment_offsets, distribution_offsets) work on
shape bounds and return the per-shape (dx, dy) needed.
"""

import math
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Sequence

from .geometry import Bounds

if TYPE_CHECKING:
    from .document import Document


Positions = dict[str, tuple[float, float]]
EdgePairs = Sequence[tuple[str, str]]

# Default layout parameters
DEFAULT_SPACING_X = 200
DEFAULT_SPACING_Y = 150
DEFAULT_START_X = 100
DEFAULT_START_Y = 100


def grid_layout(
    node_ids: Sequence[str],
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    columns: int | None = None
) -> Positions:
    """
    Arrange nodes in a grid pattern.

    Args:
        node_ids: Nodes to arrange, in placement order
        spacing_x: Horizontal spacing between node centres
        spacing_y: Vertical spacing between node centres
        start_x: X coordinate of the first node
        start_y: Y coordinate of the first node
        columns: Number of columns (auto-calculated if None)

    Returns:
        Mapping node_id -> (cx, cy)
    """
    if not node_ids:
        return {}

    # Auto-calculate columns based on node count
    if columns is None:
        columns = max(3, int(len(node_ids) ** 0.5) + 1)

    positions: Positions = {}
    for i, node_id in enumerate(node_ids):
        row = i // columns
        col = i % columns
        positions[node_id] = (start_x + col * spacing_x, start_y + row * spacing_y)
    return positions


def tree_layout(
    node_ids: Sequence[str],
    edges: EdgePairs,
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    orientation: str = "vertical"  # "vertical" or "horizontal"
) -> Positions:
    """
    Arrange nodes in levels following edge direction (breadth-first).

    Nodes with no incoming edges are roots. Self-loops are ignored.

    Args:
        node_ids: Nodes to arrange
        edges: (source, target) pairs defining the hierarchy
        spacing_x: Horizontal spacing between nodes
        spacing_y: Vertical spacing between levels
        start_x: X coordinate of the first node
        start_y: Y coordinate of the first node
        orientation: "vertical" (top-to-bottom) or "horizontal" (left-to-right)

    Returns:
        Mapping node_id -> (cx, cy)
    """
    if not node_ids:
        return {}

    # Build adjacency list (parent -> children)
    children: dict[str, list[str]] = {n: [] for n in node_ids}
    has_parent: set[str] = set()

    for source, target in edges:
        if source == target:
            continue
        if source in children and target in children:
            children[source].append(target)
            has_parent.add(target)

    roots = [n for n in node_ids if n not in has_parent]
    if not roots:
        # Every node is in a cycle; start from the first one
        roots = [node_ids[0]]

    # BFS to assign levels
    levels: dict[str, int] = {}
    queue = [(r, 0) for r in roots]

    while queue:
        node_id, level = queue.pop(0)
        if node_id in levels:
            continue
        levels[node_id] = level
        for child in children.get(node_id, []):
            queue.append((child, level + 1))

    # Nodes only reachable through a cycle that has no root
    for node_id in node_ids:
        if node_id not in levels:
            levels[node_id] = 0

    level_counts: dict[int, int] = defaultdict(int)
    positions: Positions = {}
    for node_id in node_ids:
        level = levels[node_id]
        idx = level_counts[level]
        level_counts[level] += 1

        if orientation == "vertical":
            positions[node_id] = (start_x + idx * spacing_x, start_y + level * spacing_y)
        else:
            positions[node_id] = (start_x + level * spacing_x, start_y + idx * spacing_y)
    return positions


def circular_layout(
    node_ids: Sequence[str],
    center_x: float = 400,
    center_y: float = 400,
    radius: float | None = None,
) -> Positions:
    """
    Space nodes evenly on a circle, starting at 12 o'clock.

    The radius grows with the node count when not given.
    """
    if not node_ids:
        return {}
    if len(node_ids) == 1:
        return {node_ids[0]: (center_x, center_y)}
    if radius is None:
        radius = max(150.0, len(node_ids) * DEFAULT_SPACING_X / (2 * math.pi))
    positions: Positions = {}
    for i, node_id in enumerate(node_ids):
        angle = 2 * math.pi * i / len(node_ids) - math.pi / 2
        positions[node_id] = (center_x + radius * math.cos(angle), center_y + radius * math.sin(angle))
    return positions


def concentric_layout(
    node_ids: Sequence[str],
    edges: EdgePairs,
    center_x: float = 400,
    center_y: float = 400,
    ring_spacing: float = DEFAULT_SPACING_Y,
) -> Positions:
    """
    Place nodes on rings by degree: highest-degree nodes innermost.

    Ring k holds the k-th distinct degree value in descending order.
    """
    if not node_ids:
        return {}
    degree: dict[str, int] = {n: 0 for n in node_ids}
    for source, target in edges:
        if source in degree:
            degree[source] += 1
        if target in degree and target != source:
            degree[target] += 1

    rings: dict[int, list[str]] = defaultdict(list)
    for node_id in node_ids:
        rings[degree[node_id]].append(node_id)

    positions: Positions = {}
    for ring_index, value in enumerate(sorted(rings, reverse=True)):
        members = rings[value]
        radius = ring_index * ring_spacing
        if radius == 0 and len(members) > 1:
            radius = ring_spacing / 2
        for i, node_id in enumerate(members):
            angle = 2 * math.pi * i / len(members) - math.pi / 2
            positions[node_id] = (center_x + radius * math.cos(angle), center_y + radius * math.sin(angle))
    return positions


def force_layout(
    node_ids: Sequence[str],
    edges: EdgePairs,
    iterations: int = 100,
    repulsion: float = 5000,
    attraction: float = 0.01,
    damping: float = 0.1,
    min_distance: float = 50
) -> Positions:
    """
    Arrange nodes using a force-directed layout algorithm.

    Simulates physical forces:
    - All nodes repel each other (like charged particles)
    - Connected nodes attract each other (like springs)

    Starts from a circular arrangement, so the result is deterministic.

    Args:
        node_ids: Nodes to arrange
        edges: (source, target) pairs; connected nodes attract
        iterations: Number of simulation iterations
        repulsion: Strength of repulsion between all nodes
        attraction: Strength of attraction along edges
        damping: Factor to reduce movement each iteration
        min_distance: Minimum distance to clamp forces

    Returns:
        Mapping node_id -> (cx, cy)
    """
    if len(node_ids) < 2:
        return circular_layout(node_ids)

    positions = {n: list(p) for n, p in circular_layout(node_ids, radius=200).items()}

    for _ in range(iterations):
        forces: dict[str, list[float]] = {n: [0.0, 0.0] for n in node_ids}

        # Repulsion between all node pairs (Coulomb's law)
        for i, n1 in enumerate(node_ids):
            for n2 in node_ids[i + 1:]:
                dx = positions[n1][0] - positions[n2][0]
                dy = positions[n1][1] - positions[n2][1]
                dist = max(min_distance, math.sqrt(dx * dx + dy * dy))
                force = repulsion / (dist * dist)
                fx = force * dx / dist
                fy = force * dy / dist
                forces[n1][0] += fx
                forces[n1][1] += fy
                forces[n2][0] -= fx
                forces[n2][1] -= fy

        # Attraction along edges (Hooke's law)
        for source, target in edges:
            if source == target or source not in positions or target not in positions:
                continue
            dx = positions[target][0] - positions[source][0]
            dy = positions[target][1] - positions[source][1]
            dist = max(min_distance, math.sqrt(dx * dx + dy * dy))
            force = dist * attraction
            fx = force * dx / dist
            fy = force * dy / dist
            forces[source][0] += fx
            forces[source][1] += fy
            forces[target][0] -= fx
            forces[target][1] -= fy

        for node_id in node_ids:
            fx, fy = forces[node_id]
            positions[node_id][0] = max(min_distance, positions[node_id][0] + fx * damping)
            positions[node_id][1] = max(min_distance, positions[node_id][1] + fy * damping)

    return {n: (p[0], p[1]) for n, p in positions.items()}


LAYOUTS: dict[str, Callable[..., Positions]] = {
    "grid": grid_layout,
    "tree": tree_layout,
    "force": force_layout,
    "circle": circular_layout,
    "concentric": concentric_layout,
}

_TAKES_EDGES = {"tree", "force", "concentric"}


def compute_layout(document: "Document", name: str, **options) -> Positions:
    """
    Run a named layout over the document's registered nodes.

    Raises:
        ValueError: If the layout name is unknown
    """
    if name not in LAYOUTS:
        raise ValueError(f"Unknown layout: {name}. Valid: {', '.join(LAYOUTS)}")
    node_ids = [node.id for node in document.get_nodes()]
    if name in _TAKES_EDGES:
        edges = [(e.source_node_id, e.target_node_id) for e in document.get_edges()]
        return LAYOUTS[name](node_ids, edges, **options)
    return LAYOUTS[name](node_ids, **options)


# --- Arrangement ---

ALIGNMENTS = ("left", "center", "right", "top", "middle", "bottom")


def alignment_offsets(bounds: Sequence[Bounds], alignment: str) -> list[tuple[float, float]]:
    """
    Per-shape (dx, dy) aligning every box to the selection's edge or centre.

    Args:
        bounds: Bounds of the shapes to align
        alignment: One of "left", "center", "right", "top", "middle", "bottom"

    Raises:
        ValueError: For an unknown alignment
    """
    if alignment not in ALIGNMENTS:
        raise ValueError(f"Unknown alignment: {alignment}. Valid: {', '.join(ALIGNMENTS)}")
    if not bounds:
        return []

    left = min(b.x for b in bounds)
    right = max(b.right for b in bounds)
    top = min(b.y for b in bounds)
    bottom = max(b.bottom for b in bounds)

    offsets = []
    for b in bounds:
        if alignment == "left":
            offsets.append((left - b.x, 0.0))
        elif alignment == "right":
            offsets.append((right - b.right, 0.0))
        elif alignment == "center":
            offsets.append(((left + right) / 2 - b.center.x, 0.0))
        elif alignment == "top":
            offsets.append((0.0, top - b.y))
        elif alignment == "bottom":
            offsets.append((0.0, bottom - b.bottom))
        else:
            offsets.append((0.0, (top + bottom) / 2 - b.center.y))
    return offsets


def distribution_offsets(bounds: Sequence[Bounds], axis: str = "horizontal") -> list[tuple[float, float]]:
    """
    Per-shape (dx, dy) spacing boxes with equal gaps between them.

    The first and last boxes along the axis stay put. Offsets are returned
    in the order of `bounds`, not the sorted order.

    Args:
        bounds: Bounds of at least three shapes
        axis: "horizontal" or "vertical"

    Raises:
        ValueError: For fewer than three boxes or an unknown axis
    """
    if axis not in ("horizontal", "vertical"):
        raise ValueError(f"Unknown axis: {axis}")
    if len(bounds) < 3:
        raise ValueError("Distribute needs at least three shapes")

    horizontal = axis == "horizontal"

    def start(b: Bounds) -> float:
        return b.x if horizontal else b.y

    def size(b: Bounds) -> float:
        return b.width if horizontal else b.height

    order = sorted(range(len(bounds)), key=lambda i: start(bounds[i]))
    first = bounds[order[0]]
    span_end = max(start(b) + size(b) for b in bounds)
    total_size = sum(size(b) for b in bounds)
    gap = (span_end - start(first) - total_size) / (len(bounds) - 1)

    offsets: list[tuple[float, float]] = [(0.0, 0.0)] * len(bounds)
    cursor = start(first)
    for i in order:
        delta = cursor - start(bounds[i])
        offsets[i] = (delta, 0.0) if horizontal else (0.0, delta)
        cursor += size(bounds[i]) + gap
    return offsets
