"""Subscriber handles — what the relay holds for each open connection.

Learn: The core only needs two things from a connection: "can you still
receive?" and "send this text". WebSocketHandle adapts a Starlette
WebSocket to that; tests use a plain in-memory handle.

A failed send is reported as False, never raised. By the time the relay
notices, the connection's own receive loop is already tearing it down.
"""

import uuid
from typing import Protocol

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

logger = structlog.get_logger()


class SubscriberHandle(Protocol):
    id: str
    legacy: bool

    def is_open(self) -> bool:
        ...

    async def send(self, payload: str) -> bool:
        ...


class WebSocketHandle:
    """SubscriberHandle backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.id = uuid.uuid4().hex[:12]
        # Set once the client speaks the legacy dialect.
        self.legacy = False
        self._closed = False

    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self._closed = True

    async def send(self, payload: str) -> bool:
        if not self.is_open():
            return False
        try:
            await self.websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            self._closed = True
            logger.debug("ws.send_failed", connection_id=self.id, error=str(e))
            return False
        return True

    def __repr__(self) -> str:
        return f"<WebSocketHandle {self.id}>"
