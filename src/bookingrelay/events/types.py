"""Event kind constants.

Learn: Centralizing event kinds as constants prevents typos and makes it
easy to discover every frame the relay reads or writes. The legacy names
are the ones the first generation of mobile clients still speaks.
"""

# ─── Inbound (client → relay) ────────────────────────────

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"
PING = "ping"

# ─── Outbound (relay → client) ───────────────────────────

CURRENT_STATE = "current_state"
ASSIGNED = "assigned"
PONG = "pong"

# ─── Legacy dialect ──────────────────────────────────────

LEGACY_SUBSCRIBE = "SUBSCRIBE_BOOKING"
LEGACY_UNSUBSCRIBE = "UNSUBSCRIBE_BOOKING"
LEGACY_CURRENT_STATE = "CURRENT_DRIVER_STATE"
LEGACY_ASSIGNED = "DRIVER_ASSIGNED"

LEGACY_INBOUND = {
    LEGACY_SUBSCRIBE: SUBSCRIBE,
    LEGACY_UNSUBSCRIBE: UNSUBSCRIBE,
}

LEGACY_OUTBOUND = {
    CURRENT_STATE: LEGACY_CURRENT_STATE,
    ASSIGNED: LEGACY_ASSIGNED,
}
