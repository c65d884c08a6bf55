"""
Graph registry - referential bookkeeping for diagram nodes and edges.

This module implements:
- The node table (node id -> Node shape used for routing)
- The edge table (edge id -> (source id, target id))
- Adjacency (node id -> edge ids), always derived from the edge table
- Parallel edge offsets and self-loop angle assignment

The registry never cascades: removing a node leaves its edges registered.
Callers that delete a node are expected to remove its edges first (see
DeleteNodeCommand).
"""

import logging
import math
from typing import TYPE_CHECKING, Callable, Optional

from .config import EditorConfig

if TYPE_CHECKING:
    from .models import Node

logger = logging.getLogger(__name__)


# Self-loops fan out around a node: the four compass points first, then
# the diagonals, then 30 degree steps
_PRIMARY_LOOP_ANGLES = [0.0, math.pi / 2, math.pi, 3 * math.pi / 2]
_SECONDARY_LOOP_ANGLES = [math.pi / 4, 3 * math.pi / 4, 5 * math.pi / 4, 7 * math.pi / 4]


def parallel_offset(index: int, step: float) -> float:
    """
    Offset of the index-th edge in a bundle: 0, +d, -d, +2d, -2d, ...
    """
    if index <= 0:
        return 0.0
    sign = 1.0 if index % 2 == 1 else -1.0
    return sign * math.ceil(index / 2) * step


def self_loop_angle(index: int) -> float:
    """Angle in radians for the index-th self-loop on a node."""
    primary = len(_PRIMARY_LOOP_ANGLES)
    if index < primary:
        return _PRIMARY_LOOP_ANGLES[index]
    if index < primary + len(_SECONDARY_LOOP_ANGLES):
        return _SECONDARY_LOOP_ANGLES[index - primary]
    # Past the diagonals the loop count itself picks a 30 degree step
    return (index * math.pi / 6) % (2 * math.pi)


class GraphRegistry:
    """
    Tracks which nodes exist and which edges connect them.

    Adjacency sets are maintained incrementally by register_edge and
    unregister_edge, and check_consistency() verifies they still match
    the edge table.
    """

    def __init__(self, config: Optional[EditorConfig] = None):
        self.config = config or EditorConfig()
        self._node_shapes: dict[str, Optional["Node"]] = {}      # node_id -> Node
        self._edge_connections: dict[str, tuple[str, str]] = {}  # edge_id -> (source, target)
        self._edges_by_node: dict[str, set[str]] = {}            # node_id -> set of edge_ids
        self._update_edge_callback: Optional[Callable[[str], None]] = None

    # --- Nodes ---

    def register_node(self, node_id: str, shape: Optional["Node"] = None):
        self._node_shapes[node_id] = shape
        self._edges_by_node.setdefault(node_id, set())
        logger.debug("Registered node %s", node_id)

    def unregister_node(self, node_id: str):
        """Remove a node. Its adjacency set is kept while edges still reference it."""
        self._node_shapes.pop(node_id, None)
        if not self._edges_by_node.get(node_id):
            self._edges_by_node.pop(node_id, None)
        else:
            logger.warning(
                "Node %s unregistered with %d edges still attached",
                node_id, len(self._edges_by_node[node_id]),
            )

    def set_node_shape(self, node_id: str, shape: "Node"):
        if node_id not in self._node_shapes:
            raise ValueError(f"Node not registered: {node_id}")
        self._node_shapes[node_id] = shape

    def get_node_shape(self, node_id: str) -> Optional["Node"]:
        return self._node_shapes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_shapes

    def get_all_node_ids(self) -> list[str]:
        return list(self._node_shapes)

    # --- Edges ---

    def register_edge(self, edge_id: str, source_id: str, target_id: str):
        if edge_id in self._edge_connections:
            self.unregister_edge(edge_id)
        self._edge_connections[edge_id] = (source_id, target_id)
        self._edges_by_node.setdefault(source_id, set()).add(edge_id)
        self._edges_by_node.setdefault(target_id, set()).add(edge_id)
        logger.debug("Registered edge %s (%s -> %s)", edge_id, source_id, target_id)

    def unregister_edge(self, edge_id: str):
        connection = self._edge_connections.pop(edge_id, None)
        if connection is None:
            return
        for node_id in set(connection):
            edges = self._edges_by_node.get(node_id)
            if edges is None:
                continue
            edges.discard(edge_id)
            if not edges and node_id not in self._node_shapes:
                del self._edges_by_node[node_id]
        logger.debug("Unregistered edge %s", edge_id)

    def get_edge_connection(self, edge_id: str) -> Optional[tuple[str, str]]:
        return self._edge_connections.get(edge_id)

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edge_connections

    def get_all_edge_ids(self) -> list[str]:
        return list(self._edge_connections)

    def get_edge_ids_for_node(self, node_id: str) -> list[str]:
        """Edges touching a node, in registration order."""
        edge_ids = self._edges_by_node.get(node_id, set())
        return [eid for eid in self._edge_connections if eid in edge_ids]

    def get_edge_ids_between(self, node_a: str, node_b: str) -> list[str]:
        """
        Edges joining two nodes in either direction, in registration order.

        With node_a == node_b this returns the node's self-loops.
        """
        pair = {node_a, node_b}
        result = []
        for edge_id, (source, target) in self._edge_connections.items():
            if {source, target} == pair:
                result.append(edge_id)
        return result

    # --- Derived routing parameters ---

    def calculate_parallel_offset(self, source_id: str, target_id: str) -> float:
        """
        Curve offset for a new edge between two nodes.

        The n-th edge between an unordered pair gets 0, +d, -d, +2d, ...
        measured in a frame fixed by the pair, so edges drawn in opposite
        directions still fan out to distinct sides.
        """
        index = len(self.get_edge_ids_between(source_id, target_id))
        offset = parallel_offset(index, self.config.parallel_edge_step)
        return self._to_edge_frame(offset, source_id, target_id)

    def calculate_parallel_offsets(self, source_id: str, target_id: str) -> dict[str, float]:
        """Offsets the existing bundle between two nodes would get if laid out afresh."""
        result = {}
        for index, edge_id in enumerate(self.get_edge_ids_between(source_id, target_id)):
            source, target = self._edge_connections[edge_id]
            result[edge_id] = self._to_edge_frame(
                parallel_offset(index, self.config.parallel_edge_step), source, target
            )
        return result

    @staticmethod
    def _to_edge_frame(offset: float, source_id: str, target_id: str) -> float:
        # Offsets are defined for edges running from the smaller id to the larger
        if offset != 0 and source_id > target_id:
            return -offset
        return offset

    def get_next_self_loop_angle(self, node_id: str) -> float:
        """Angle (radians) for a new self-loop on a node."""
        return self_loop_angle(len(self.get_edge_ids_between(node_id, node_id)))

    # --- Change propagation ---

    def set_update_edge_callback(self, callback: Optional[Callable[[str], None]]):
        """Set the function called with each edge id whose route must be refreshed."""
        self._update_edge_callback = callback

    def update_edges_for_node(self, node_id: str):
        """Refresh every edge attached to a node after the node moved or resized."""
        if self._update_edge_callback is None:
            return
        for edge_id in self.get_edge_ids_for_node(node_id):
            self._update_edge_callback(edge_id)

    # --- Maintenance ---

    def clear(self):
        self._node_shapes.clear()
        self._edge_connections.clear()
        self._edges_by_node.clear()

    def check_consistency(self) -> list[str]:
        """
        Compare adjacency with the edge table.

        Returns:
            Human-readable descriptions of each mismatch (empty when consistent)
        """
        expected: dict[str, set[str]] = {node_id: set() for node_id in self._node_shapes}
        for edge_id, (source, target) in self._edge_connections.items():
            expected.setdefault(source, set()).add(edge_id)
            expected.setdefault(target, set()).add(edge_id)
        problems = []
        for node_id in sorted(set(expected) | set(self._edges_by_node)):
            have = self._edges_by_node.get(node_id)
            want = expected.get(node_id)
            if have != want:
                problems.append(f"Adjacency for {node_id} is {sorted(have or [])}, expected {sorted(want or [])}")
        return problems
