"""Test fixtures — in-memory source and handles, no database needed.

Learn: FakeSource implements the AssignmentSource protocol over two
dicts and records every batched read, so tests can assert on query
volume. FakeHandle records every frame it was sent (decoded JSON).
"""

import asyncio
import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bookingrelay.main import create_app
from bookingrelay.relay.hub import RelayHub
from bookingrelay.relay.service import build_relay
from bookingrelay.relay.source import Snapshot
from bookingrelay.relay.types import Assignment
from bookingrelay.schemas.messages import DriverRecord


class FakeSource:
    def __init__(self):
        self.bookings: dict = {}  # booking id -> raw assigned_driver_id
        self.drivers: dict = {}  # driver id -> DriverRecord
        self.assignment_queries: list[frozenset] = []
        self.driver_reads: list = []
        self.fail_reads = False
        self.fail_driver_reads = False
        self.fail_snapshots = False
        self.fail_ping = False
        # asyncio.Event gates: a read computes its result, then waits here
        self.snapshot_gate = None
        self.driver_gate = None
        self.parked = 0

    def add_driver(self, driver_id, firstname="Dana", lastname="Driver"):
        record = DriverRecord(
            id=driver_id,
            firstname=firstname,
            lastname=lastname,
            email=f"{firstname.lower()}@example.com",
            phone="+1-555-0100",
        )
        self.drivers[driver_id] = record
        return record

    async def read_assignments(self, topics):
        self.assignment_queries.append(frozenset(topics))
        if self.fail_reads:
            raise ConnectionError("database unavailable")
        return {
            topic: Assignment.from_raw(self.bookings[topic])
            for topic in topics
            if topic in self.bookings
        }

    async def read_driver(self, driver_id):
        self.driver_reads.append(driver_id)
        if self.fail_driver_reads:
            raise ConnectionError("database unavailable")
        driver = self.drivers.get(driver_id)
        await self._park(self.driver_gate)
        return driver

    async def read_snapshot(self, topic):
        if self.fail_snapshots:
            raise ConnectionError("database unavailable")
        if topic not in self.bookings:
            return None
        assignment = Assignment.from_raw(self.bookings[topic])
        driver = self.drivers.get(assignment.driver_id) if assignment.is_assigned else None
        await self._park(self.snapshot_gate)
        return Snapshot(assignment=assignment, driver=driver)

    async def ping(self):
        if self.fail_ping:
            raise ConnectionError("database unavailable")

    async def _park(self, gate):
        if gate is not None:
            self.parked += 1
            await gate.wait()

    async def wait_parked(self, count=1):
        while self.parked < count:
            await asyncio.sleep(0)


class FakeHandle:
    def __init__(self, name="client", open=True):
        self.id = name
        self.legacy = False
        self.open = open
        self.sent: list[dict] = []

    def is_open(self):
        return self.open

    async def send(self, payload):
        if not self.open:
            return False
        self.sent.append(json.loads(payload))
        return True

    def frames(self, kind):
        return [f for f in self.sent if f.get("kind") == kind]

    def __repr__(self):
        return f"<FakeHandle {self.id}>"


class ExplodingHandle(FakeHandle):
    """Claims to be open, then raises on send."""

    async def send(self, payload):
        raise RuntimeError("socket went away")


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def hub():
    return RelayHub(strict=True)


@pytest.fixture()
def relay(source):
    """Fully wired relay over the fake source (detector not started)."""
    return build_relay(source, poll_interval=0.01, strict=True)


@pytest.fixture()
def app(source):
    return create_app(source=source, poll_interval=3600)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client against the app (lifespan not run, detector idle)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_handle():
    """Factory for in-memory subscriber handles."""
    return FakeHandle


@pytest.fixture()
def make_exploding_handle():
    return ExplodingHandle
