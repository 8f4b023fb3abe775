"""
Registry of connected viewer sockets for the real-time push path.

broadcast() only enqueues. Every viewer has its own bounded queue, drained
by a sender task running on that viewer's connection, so a viewer that
stops reading holds up nothing but itself. When a queue is full the oldest
frame is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from fastapi import WebSocket, WebSocketDisconnect

log = logging.getLogger(__name__)

VIEWER_QUEUE_SIZE = 32


class ViewerHub:

    def __init__(self, queue_size: int = VIEWER_QUEUE_SIZE):
        self._queue_size = queue_size
        self._queues: Dict[WebSocket, asyncio.Queue] = {}
        self.pushed = 0
        self.dropped = 0

    def add(self, websocket: WebSocket) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues[websocket] = queue
        return queue

    def discard(self, websocket: WebSocket):
        self._queues.pop(websocket, None)

    def __len__(self) -> int:
        return len(self._queues)

    def broadcast(self, text: str):
        """Queue a frame for every viewer. Never waits on a socket."""
        for websocket, queue in list(self._queues.items()):
            if queue.full():
                queue.get_nowait()
                self.dropped += 1
                log.debug("Viewer queue full, dropped oldest frame")
            queue.put_nowait(text)
            self.pushed += 1

    async def pump(self, websocket: WebSocket, queue: asyncio.Queue):
        """Send queued frames to one viewer until its socket fails."""
        while True:
            text = await queue.get()
            try:
                await websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                log.debug("Dropping viewer after failed send: %s", exc)
                self.discard(websocket)
                return
