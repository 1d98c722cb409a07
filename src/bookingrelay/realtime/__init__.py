"""Real-time transport — WebSocket endpoint.

Learn: The transport layer is thin. It accepts the connection, wraps it
in a WebSocketHandle, and feeds every frame to the relay's
ConnectionHandler. All subscription bookkeeping lives in bookingrelay.relay.
"""
