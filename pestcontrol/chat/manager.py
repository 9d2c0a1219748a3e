"""
WebSocket connection registry for the staff/customer chat.

Every saved chat message is relayed to all connected clients; each client
filters for the customer conversation it has open.
"""

import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open chat sockets and broadcasts to them."""

    def __init__(self):
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info('Chat client connected (%d open)', len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info('Chat client disconnected (%d open)', len(self._connections))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, message: dict) -> None:
        async with self._lock:
            connections = list(self._connections)

        data = json.dumps(message, default=str)
        closed = []

        for websocket in connections:
            try:
                await websocket.send_text(data)
            except Exception:
                # Socket already gone; drop it below.
                closed.append(websocket)

        if closed:
            async with self._lock:
                for websocket in closed:
                    self._connections.discard(websocket)


manager = ConnectionManager()
