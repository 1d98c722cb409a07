"""WebSocket endpoint tests — real app, fake source.

Learn: Starlette's TestClient runs the app (and its lifespan) in a
background event loop. client.portal.call() runs a coroutine on that
loop, which is how these tests drive a detector tick by hand. The poll
interval is an hour so the background loop never interferes.
"""

import time

import pytest
from fastapi.testclient import TestClient

BOOKING = 42


@pytest.fixture()
def ws_client(app):
    with TestClient(app) as client:
        yield client


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _topics(client):
    return {t["topic"] for t in client.get("/api/v1/subscriptions").json()["topics"]}


def test_subscribe_receives_current_state(ws_client, source):
    source.add_driver(1, firstname="Ada")
    source.bookings[BOOKING] = 1

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"kind": "subscribe", "topic": BOOKING})
        frame = ws.receive_json()

    assert frame["kind"] == "current_state"
    assert frame["topic"] == BOOKING
    assert frame["driver"]["firstname"] == "Ada"


def test_assignment_change_is_pushed(ws_client, app, source):
    source.add_driver(1)
    source.add_driver(2, firstname="Bo")
    source.bookings[BOOKING] = 1
    detector = app.state.relay.detector

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"kind": "subscribe", "topic": BOOKING})
        assert ws.receive_json()["kind"] == "current_state"

        ws_client.portal.call(detector.tick)
        source.bookings[BOOKING] = 2
        ws_client.portal.call(detector.tick)

        frame = ws.receive_json()
        assert frame["kind"] == "assigned"
        assert frame["driver"]["firstname"] == "Bo"


def test_malformed_frame_keeps_connection_open(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        ws.send_text("{{{ definitely not json")
        ws.send_json({"kind": "ping"})
        assert ws.receive_json() == {"kind": "pong"}


def test_legacy_client(ws_client, source):
    source.bookings[BOOKING] = 0

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "SUBSCRIBE_BOOKING", "bookingId": BOOKING})
        frame = ws.receive_json()

    assert frame["type"] == "CURRENT_DRIVER_STATE"
    assert frame["bookingId"] == BOOKING
    assert frame["driver"] is None


def test_disconnect_releases_subscriptions(ws_client, source):
    source.bookings[1] = None
    source.bookings[2] = None

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"kind": "subscribe", "topic": 1})
        ws.receive_json()
        ws.send_json({"kind": "subscribe", "topic": 2})
        ws.receive_json()
        assert _topics(ws_client) == {1, 2}

    assert _wait_for(lambda: _topics(ws_client) == set())


def test_unsubscribe_then_disconnect(ws_client, source):
    source.bookings[BOOKING] = None

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"kind": "subscribe", "topic": BOOKING})
        ws.receive_json()
        ws.send_json({"kind": "unsubscribe", "topic": BOOKING})
        ws.send_json({"kind": "ping"})
        assert ws.receive_json() == {"kind": "pong"}
        assert _topics(ws_client) == set()

    assert _wait_for(lambda: _topics(ws_client) == set())
