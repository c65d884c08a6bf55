"""
Document - the ordered shape container of one editing session.

This module implements:
- Z-ordered shape storage (index 0 is the back-most shape)
- O(1) shape lookup by id
- Keeping the graph registry in step with the node and edge shapes present
- Publishing shape:added / shape:removed / shape:updated events

Commands mutate shapes directly and then call shape_changed() so that
edges attached to a moved node are re-routed and observers are notified.
"""

import logging
from typing import Iterator, Optional

from .config import EditorConfig
from .events import (
    DOCUMENT_REORDERED, SHAPE_ADDED, SHAPE_REMOVED, SHAPE_UPDATED, EventBus,
)
from .geometry import Bounds, Point
from .graph import GraphRegistry
from .models import AnyShape, Edge, Group, Node, Path, shape_from_dict

logger = logging.getLogger(__name__)


def _nested_graph_shape(shape: AnyShape) -> Optional[AnyShape]:
    """First node or edge inside a group, if any."""
    if isinstance(shape, Group):
        for child in shape.iter_descendants():
            if isinstance(child, (Node, Edge)):
                return child
    return None


class Document:
    """
    Owns the shapes of a drawing plus the registry and event bus they use.

    Node and edge shapes are registered with the graph when added and
    unregistered when removed. Removing a node never removes its edges.
    """

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        events: Optional[EventBus] = None,
        graph: Optional[GraphRegistry] = None,
    ):
        self.config = config or EditorConfig()
        self.events = events or EventBus()
        self.graph = graph or GraphRegistry(self.config)
        self._shapes: list[AnyShape] = []
        self._shape_index: dict[str, AnyShape] = {}  # shape_id -> shape
        self.graph.set_update_edge_callback(self._on_edge_route_changed)

    # --- Queries ---

    def __len__(self) -> int:
        return len(self._shapes)

    def __iter__(self) -> Iterator[AnyShape]:
        return iter(list(self._shapes))

    def __contains__(self, shape: AnyShape) -> bool:
        return self._shape_index.get(shape.id) is shape

    def get_shapes(self) -> list[AnyShape]:
        """Shapes back to front (a copy)."""
        return list(self._shapes)

    def get_shape(self, shape_id: str) -> Optional[AnyShape]:
        """Top-level shape by id."""
        return self._shape_index.get(shape_id)

    def find_shape(self, shape_id: str) -> Optional[AnyShape]:
        """Shape by id, searching inside groups as well."""
        shape = self._shape_index.get(shape_id)
        if shape is not None:
            return shape
        for top in self._shapes:
            if isinstance(top, Group):
                for child in top.iter_descendants():
                    if child.id == shape_id:
                        return child
        return None

    def index_of(self, shape: AnyShape) -> int:
        for i, existing in enumerate(self._shapes):
            if existing is shape:
                return i
        raise ValueError(f"Shape not in document: {shape.id}")

    def get_nodes(self) -> list[Node]:
        return [s for s in self._shapes if isinstance(s, Node)]

    def get_edges(self) -> list[Edge]:
        return [s for s in self._shapes if isinstance(s, Edge)]

    def hit_test(self, point: Point, tolerance: Optional[float] = None) -> Optional[AnyShape]:
        """Front-most shape under a point."""
        if tolerance is None:
            tolerance = self.config.hit_tolerance
        for shape in reversed(self._shapes):
            if shape.hit_test(point, tolerance):
                return shape
        return None

    def get_bounds(self) -> Bounds:
        """Union of all shape bounds, ignoring shapes with empty bounds."""
        result: Optional[Bounds] = None
        for shape in self._shapes:
            bounds = shape.get_bounds()
            if bounds.is_empty():
                continue
            result = bounds if result is None else result.union(bounds)
        return result or Bounds.empty()

    # --- Mutation ---

    def add_shape(self, shape: AnyShape, index: Optional[int] = None):
        """
        Insert a shape at a z-order index (default: front).

        Raises:
            ValueError: If a shape with the same id is already present, or a
                group holds nodes or edges
        """
        if shape.id in self._shape_index:
            raise ValueError(f"Shape already in document: {shape.id}")
        nested = _nested_graph_shape(shape)
        if nested is not None:
            raise ValueError(f"Group {shape.id} contains {nested.type} {nested.id}; graph shapes must be top-level")
        if index is None or index > len(self._shapes):
            index = len(self._shapes)
        index = max(0, index)
        self._shapes.insert(index, shape)
        self._shape_index[shape.id] = shape
        self._apply_config(shape)
        self._register_graph_shape(shape)
        logger.debug("Added %s %s at index %d", shape.type, shape.id, index)
        self.events.emit(SHAPE_ADDED, {"shape_id": shape.id, "index": index})

    def remove_shape(self, shape: AnyShape) -> int:
        """
        Remove a shape and return the index it occupied.

        Raises:
            ValueError: If the shape is not in the document
        """
        index = self.index_of(shape)
        del self._shapes[index]
        del self._shape_index[shape.id]
        self._unregister_graph_shape(shape)
        logger.debug("Removed %s %s from index %d", shape.type, shape.id, index)
        self.events.emit(SHAPE_REMOVED, {"shape_id": shape.id, "index": index})
        return index

    def reorder_shapes(self, order: list[AnyShape]):
        """
        Replace the z-order with `order`, which must be a permutation of the current shapes.

        Raises:
            ValueError: If `order` is not a permutation
        """
        if len(order) != len(self._shapes) or {id(s) for s in order} != {id(s) for s in self._shapes}:
            raise ValueError("Reorder must be a permutation of the document's shapes")
        self._shapes = list(order)
        self.events.emit(DOCUMENT_REORDERED, {"order": [s.id for s in self._shapes]})

    def shape_changed(self, shape: AnyShape):
        """Announce an in-place change; re-routes edges attached to a changed node."""
        shape.update_element()
        self.events.emit(SHAPE_UPDATED, {"shape_id": shape.id})
        if isinstance(shape, Node):
            self.graph.update_edges_for_node(shape.id)
        elif isinstance(shape, Group):
            for child in shape.iter_descendants():
                if isinstance(child, Node):
                    self.graph.update_edges_for_node(child.id)

    def clear(self):
        for shape in list(self._shapes):
            self.remove_shape(shape)
        self.graph.clear()

    def _apply_config(self, shape: AnyShape):
        shapes = [shape, *shape.iter_descendants()] if isinstance(shape, Group) else [shape]
        for item in shapes:
            if isinstance(item, Path):
                item.set_sample_steps(self.config.curve_sample_steps)

    def _register_graph_shape(self, shape: AnyShape):
        if isinstance(shape, Node):
            self.graph.register_node(shape.id, shape)
        elif isinstance(shape, Edge):
            shape.bind(self.graph)
            self.graph.register_edge(shape.id, shape.source_node_id, shape.target_node_id)

    def _unregister_graph_shape(self, shape: AnyShape):
        if isinstance(shape, Node):
            self.graph.unregister_node(shape.id)
        elif isinstance(shape, Edge):
            self.graph.unregister_edge(shape.id)

    def _on_edge_route_changed(self, edge_id: str):
        edge = self._shape_index.get(edge_id)
        if edge is None:
            return
        edge.update_element()
        self.events.emit(SHAPE_UPDATED, {"shape_id": edge_id})

    # --- Plain data exchange ---

    def to_json_dict(self) -> dict:
        """Shapes in z-order as plain data."""
        return {"shapes": [shape.serialize() for shape in self._shapes]}

    @classmethod
    def from_json_dict(
        cls,
        data: dict,
        config: Optional[EditorConfig] = None,
        events: Optional[EventBus] = None,
    ) -> "Document":
        """
        Build a document from to_json_dict() output.

        Nodes are added before edges so every edge finds its endpoints
        registered; z-order is restored afterwards.
        """
        document = cls(config=config, events=events)
        shapes = [shape_from_dict(item, document.graph) for item in data.get("shapes", [])]
        for shape in sorted(shapes, key=lambda s: isinstance(s, Edge)):
            document.add_shape(shape)
        document.reorder_shapes(shapes)
        return document
