"""
WebSocket Manager - Pushes graph events to connected clients.

Events (JSON text frames):
- hello: sent to a client right after it connects, with the current hash
- graph_updated: the structure changed; carries hash, undo/redo flags and
  whether the cached layout is stale
- layout_ready: a layout for `hash` finished and can be fetched

Clients fetch full state over HTTP; events only say what changed.
"""
import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks open sockets and fans graph events out to them."""

    def __init__(self):
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._last_update: Optional[dict[str, Any]] = None

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, graph_hash: Optional[str] = None):
        """Accept `websocket`, register it, and greet it with the current hash."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        await websocket.send_text(json.dumps({"type": "hello", "hash": graph_hash}))
        logger.info("WebSocket connected (%d open)", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected (%d open)", len(self._connections))

    async def broadcast(self, message: dict[str, Any]) -> int:
        """
        Send `message` to every client concurrently.

        Clients whose send fails are dropped. Returns the number of clients
        that received the message.
        """
        async with self._lock:
            targets = list(self._connections)
        if not targets:
            return 0

        text = json.dumps(message)
        results = await asyncio.gather(
            *(websocket.send_text(text) for websocket in targets),
            return_exceptions=True,
        )
        failed = {ws for ws, result in zip(targets, results) if isinstance(result, Exception)}
        if failed:
            logger.debug("Dropping %d WebSocket(s) after failed send", len(failed))
            async with self._lock:
                self._connections -= failed
        return len(targets) - len(failed)

    async def notify_graph_updated(
        self,
        graph_hash: str,
        can_undo: bool = False,
        can_redo: bool = False,
        needs_layout: bool = True,
    ) -> int:
        """Broadcast a graph_updated event unless it repeats the previous one."""
        update = {
            "type": "graph_updated",
            "hash": graph_hash,
            "can_undo": can_undo,
            "can_redo": can_redo,
            "needs_layout": needs_layout,
        }
        if update == self._last_update:
            return 0
        self._last_update = update
        return await self.broadcast(update)

    async def notify_layout_ready(self, graph_hash: str) -> int:
        return await self.broadcast({"type": "layout_ready", "hash": graph_hash})


# Global instance
ws_manager = WebSocketManager()
