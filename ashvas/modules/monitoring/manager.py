import asyncio
import json
from typing import Any

import structlog
from fastapi import WebSocket

log = structlog.get_logger()


class StateBroadcaster:
    """Fan out state and toast events to UI clients over WebSocket and SSE."""

    def __init__(self) -> None:
        self._connections: list[WebSocket] = []
        self._sse_queues: list[asyncio.Queue[dict[str, Any]]] = []

    # ========== WebSocket ==========

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.append(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.remove(websocket)

    # ========== SSE ==========

    def subscribe_sse(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._sse_queues.append(queue)

    def unsubscribe_sse(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self._sse_queues:
            self._sse_queues.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._connections) + len(self._sse_queues)

    # ========== Broadcast (both transports) ==========

    async def broadcast(self, payload: dict[str, Any]) -> None:
        message = json.dumps(payload)
        for socket in list(self._connections):
            try:
                await socket.send_text(message)
            except Exception:
                self.disconnect(socket)

        for queue in list(self._sse_queues):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                # Slow client; it will catch up from the next state event
                log.debug("sse queue full, event skipped", event=payload.get("event"))
