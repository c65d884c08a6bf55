"""
drawserver - FastAPI application exposing one editor session.

It provides:
- REST API for shape, node and edge editing, arrangement, layout and undo/redo
- Hit testing and validation queries
- WebSocket endpoint for real-time change notification
- CORS configuration for local frontend development
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from drawcore import validation_summary

from .schemas import (
    AddPathPointRequest, AlignRequest, ApplyClassRequest, CreateEdgeRequest,
    CreateNodeRequest, DistributeRequest, InsertVertexRequest, LayoutRequest,
    MoveShapesRequest, PointRequest, RotateShapeRequest, ShapeIdsRequest,
    StyleRequest, UpdateEdgeRequest, UpdateNodeRequest, ZOrderRequest,
)
from .session import editor_session
from .websocket_manager import ws_manager

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("DRAWSERVER_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    if origin.strip()
]


# --- Async change notification ---
# Bridge between sync session callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()


def on_session_change():
    """Callback for session changes - sets event for async handler."""
    _change_event.set()


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()
        await ws_manager.notify_document_updated(
            editor_session.history.can_undo, editor_session.history.can_redo
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    editor_session.on_change(on_session_change)
    broadcaster_task = asyncio.create_task(change_broadcaster())
    logger.info("drawserver started")

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- FastAPI App ---

app = FastAPI(
    title="drawserver API",
    description="HTTP API for the drawcore drawing and diagram editor",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _history_flags() -> dict:
    return {"can_undo": editor_session.history.can_undo, "can_redo": editor_session.history.can_redo}


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Document State ---

@app.get("/api/document")
async def get_document():
    """Get the current document state."""
    return editor_session.get_state()


@app.post("/api/document/new")
async def new_document():
    """Discard the current document and history."""
    editor_session.reset()
    return {"success": True, **editor_session.get_state()}


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    if editor_session.undo():
        return {"success": True, **_history_flags()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    if editor_session.redo():
        return {"success": True, **_history_flags()}
    return {"success": False, "message": "Nothing to redo"}


# --- Node Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Create a new node."""
    try:
        node = editor_session.add_node(**request.model_dump())
        return {"success": True, "node": node.serialize()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/nodes/{node_id}")
async def get_node(node_id: str):
    """Get a specific node."""
    node = editor_session.get_node(node_id)
    if node:
        return {"success": True, "node": node.serialize()}
    raise HTTPException(status_code=404, detail="Node not found")


@app.patch("/api/nodes/{node_id}")
async def update_node(node_id: str, request: UpdateNodeRequest):
    """Update a node."""
    try:
        node = editor_session.update_node(node_id, **request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if node:
        return {"success": True, "node": node.serialize()}
    raise HTTPException(status_code=404, detail="Node not found")


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str):
    """Delete a node and its connected edges."""
    if editor_session.delete_node(node_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Node not found")


# --- Edge Operations ---

@app.post("/api/edges")
async def create_edge(request: CreateEdgeRequest):
    """Create a new edge."""
    try:
        edge = editor_session.add_edge(
            source=request.source,
            target=request.target,
            direction=request.direction,
            label=request.label
        )
        return {"success": True, "edge": edge.serialize(), "path": edge.get_path_data()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/edges/{edge_id}")
async def get_edge(edge_id: str):
    """Get a specific edge with its current route."""
    edge = editor_session.get_edge(edge_id)
    if edge:
        return {"success": True, "edge": edge.serialize(), "path": edge.get_path_data()}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.patch("/api/edges/{edge_id}")
async def update_edge(edge_id: str, request: UpdateEdgeRequest):
    """Update an edge."""
    try:
        edge = editor_session.update_edge(edge_id, **request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if edge:
        return {"success": True, "edge": edge.serialize(), "path": edge.get_path_data()}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge."""
    if editor_session.delete_edge(edge_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Edge not found")


# --- Shape Operations ---

@app.post("/api/shapes")
async def create_shape(data: dict[str, Any]):
    """Create a primitive shape or group from serialized shape data."""
    try:
        shape = editor_session.add_shape(data)
        return {"success": True, "shape": shape.serialize()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/shapes/{shape_id}/render")
async def render_shape(shape_id: str):
    """Drawable description of a shape."""
    shape = editor_session.get_shape(shape_id)
    if shape is None:
        raise HTTPException(status_code=404, detail="Shape not found")
    return {"success": True, "element": shape.render(), "bounds": shape.get_bounds().to_dict()}


def _run_shape_operation(operation, *args) -> dict:
    try:
        operation(*args)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **_history_flags()}


@app.post("/api/shapes/delete")
async def delete_shapes(request: ShapeIdsRequest):
    """Delete shapes; nodes take their edges with them."""
    return _run_shape_operation(editor_session.delete_shapes, request.shape_ids)


@app.post("/api/shapes/move")
async def move_shapes(request: MoveShapesRequest):
    """Move shapes by a delta."""
    return _run_shape_operation(editor_session.move_shapes, request.shape_ids, request.dx, request.dy)


@app.post("/api/shapes/rotate")
async def rotate_shape(request: RotateShapeRequest):
    """Set a shape's rotation in degrees."""
    return _run_shape_operation(editor_session.rotate_shape, request.shape_id, request.rotation)


@app.post("/api/shapes/style")
async def restyle_shapes(request: StyleRequest):
    """Merge style properties into shapes."""
    return _run_shape_operation(editor_session.restyle, request.shape_ids, request.style)


@app.post("/api/shapes/class")
async def apply_class(request: ApplyClassRequest):
    """Set or clear a style class, merging its style properties."""
    return _run_shape_operation(
        editor_session.apply_class, request.shape_ids, request.class_name, request.style
    )


@app.post("/api/shapes/{shape_id}/vertices")
async def insert_vertex(shape_id: str, request: InsertVertexRequest):
    """Insert a polygon or polyline vertex (appended when no index is given)."""
    return _run_shape_operation(editor_session.insert_vertex, shape_id, request.x, request.y, request.index)


@app.patch("/api/shapes/{shape_id}/vertices/{index}")
async def move_vertex(shape_id: str, index: int, request: PointRequest):
    return _run_shape_operation(editor_session.move_vertex, shape_id, index, request.x, request.y)


@app.delete("/api/shapes/{shape_id}/vertices/{index}")
async def delete_vertex(shape_id: str, index: int):
    return _run_shape_operation(editor_session.delete_vertex, shape_id, index)


@app.post("/api/shapes/{shape_id}/path-points")
async def add_path_point(shape_id: str, request: AddPathPointRequest):
    """Split a path segment by adding a point."""
    return _run_shape_operation(
        editor_session.add_path_point, shape_id, request.segment_index, request.t, request.x, request.y
    )


@app.delete("/api/shapes/{shape_id}/path-points/{index}")
async def delete_path_point(shape_id: str, index: int):
    return _run_shape_operation(editor_session.delete_path_point, shape_id, index)


@app.post("/api/shapes/align")
async def align_shapes(request: AlignRequest):
    """Align shapes along an edge or centre line."""
    return _run_shape_operation(editor_session.align, request.shape_ids, request.alignment)


@app.post("/api/shapes/distribute")
async def distribute_shapes(request: DistributeRequest):
    """Evenly distribute shapes along an axis."""
    return _run_shape_operation(editor_session.distribute, request.shape_ids, request.axis)


@app.post("/api/shapes/zorder")
async def change_z_order(request: ZOrderRequest):
    """Move shapes within the stacking order."""
    return _run_shape_operation(editor_session.change_z_order, request.shape_ids, request.operation)


@app.post("/api/shapes/group")
async def group_shapes(request: ShapeIdsRequest):
    """Group shapes."""
    try:
        group = editor_session.group(request.shape_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "group_id": group.id, **_history_flags()}


@app.post("/api/shapes/ungroup/{group_id}")
async def ungroup_shapes(group_id: str):
    """Replace a group with its children."""
    return _run_shape_operation(editor_session.ungroup, group_id)


# --- Layout ---

@app.post("/api/layout")
async def apply_layout(request: LayoutRequest):
    """Automatically arrange nodes."""
    try:
        applied = editor_session.auto_layout(request.strategy, **request.options)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": applied, **_history_flags()}


# --- Queries ---

@app.get("/api/hit-test")
async def hit_test(
    x: float = Query(...),
    y: float = Query(...),
    tolerance: Optional[float] = Query(default=None, ge=0)
):
    """Front-most shape under a point."""
    shape = editor_session.hit_test(x, y, tolerance)
    return {"success": True, "shape_id": shape.id if shape else None}


@app.get("/api/validate")
async def validate():
    """Check graph integrity of the current document."""
    issues = editor_session.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket for real-time change notification."""
    await ws_manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8765)
