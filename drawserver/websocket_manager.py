"""
WebSocket Manager - Handles real-time connections and broadcasts.

Connected clients receive a document_updated event after every change to
the editor session and re-fetch state from GET /api/document.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Manages WebSocket connections and broadcasts.

    Sends that fail (client already gone) drop the connection.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        if not self._connections:
            return

        # Serialize once for all clients
        message_text = json.dumps(message)
        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
                    logger.debug("Dropping websocket after failed send: %s", e)
                    failed.add(websocket)

            self._connections -= failed

    async def notify_document_updated(self, can_undo: bool, can_redo: bool):
        """Tell clients the document changed; they re-fetch GET /api/document."""
        await self.broadcast({
            "type": "document_updated",
            "can_undo": can_undo,
            "can_redo": can_redo,
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


# Global instance
ws_manager = WebSocketManager()
