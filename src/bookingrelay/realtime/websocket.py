"""WebSocket endpoint — booking subscriptions for frontend clients.

Learn: Each client connects to /ws and sends JSON frames:
  {"kind": "subscribe", "topic": 42}
  {"kind": "unsubscribe", "topic": 42}
(or the legacy {"type": "SUBSCRIBE_BOOKING", "bookingId": 42}).

One connection may watch many bookings. The receive loop runs until the
client disconnects or the transport fails; either way the handle is
dropped from every subscription exactly once.
"""

import structlog
from fastapi import APIRouter, WebSocket

from bookingrelay.relay.handles import WebSocketHandle
from bookingrelay.relay.service import Relay

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def booking_websocket(websocket: WebSocket):
    relay: Relay = websocket.app.state.relay

    await websocket.accept()
    handle = WebSocketHandle(websocket)
    structlog.contextvars.bind_contextvars(connection_id=handle.id)
    client = websocket.client
    logger.info("ws.connected", client=f"{client.host}:{client.port}" if client else None)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("ws.disconnected", code=message.get("code"))
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            await relay.connections.handle_message(handle, data)
    except Exception:
        logger.exception("ws.error")
    finally:
        handle.mark_closed()
        await relay.connections.disconnect(handle)
        structlog.contextvars.unbind_contextvars("connection_id")
