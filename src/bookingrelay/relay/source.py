"""Assignment source — the relay's read-only view of the booking database.

Learn: The detector and the lifecycle handler only know the
AssignmentSource protocol. SqlAssignmentSource implements it on top of the
async SQLAlchemy session factory; tests use an in-memory fake. Raw
assigned_driver_id values (NULL, 0, or an id) are turned into Assignment
values here and nowhere else.

Topics are booking ids. Clients may send them as numbers or numeric
strings, so ids are coerced to the column type for the query and results
are keyed by the topic the caller asked for.
"""

from dataclasses import dataclass
from typing import Any, Collection, Optional, Protocol

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookingrelay.db.models import Booking, Driver
from bookingrelay.relay.types import Assignment, DriverId, Topic
from bookingrelay.schemas.messages import DriverRecord


@dataclass(frozen=True)
class Snapshot:
    """Current assignment of one booking joined with its driver."""

    assignment: Assignment
    driver: Optional[DriverRecord]


class AssignmentSource(Protocol):
    async def read_assignments(
        self, topics: Collection[Topic]
    ) -> dict[Topic, Assignment]:
        """Batched read. Topics that do not exist are absent from the result."""
        ...

    async def read_driver(self, driver_id: DriverId) -> Optional[DriverRecord]:
        ...

    async def read_snapshot(self, topic: Topic) -> Optional[Snapshot]:
        """Assignment + driver in one read; None if the booking does not exist."""
        ...

    async def ping(self) -> None:
        """Raise if the source is unreachable."""
        ...


def _column_value(value: Any) -> Optional[int]:
    """Coerce a topic / driver id to the integer id column, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class SqlAssignmentSource:
    """AssignmentSource over the bookings and drivers tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def read_assignments(
        self, topics: Collection[Topic]
    ) -> dict[Topic, Assignment]:
        wanted: dict[int, list[Topic]] = {}
        for topic in topics:
            key = _column_value(topic)
            if key is not None:
                wanted.setdefault(key, []).append(topic)
        if not wanted:
            return {}

        async with self.session_factory() as db:
            result = await db.execute(
                select(Booking.id, Booking.assigned_driver_id)
                .where(Booking.id.in_(list(wanted)))
            )
            rows = result.all()

        assignments: dict[Topic, Assignment] = {}
        for row in rows:
            value = Assignment.from_raw(row.assigned_driver_id)
            for topic in wanted.get(row.id, ()):
                assignments[topic] = value
        return assignments

    async def read_driver(self, driver_id: DriverId) -> Optional[DriverRecord]:
        key = _column_value(driver_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            driver = await db.get(Driver, key)
            if driver is None:
                return None
            return DriverRecord.model_validate(driver)

    async def read_snapshot(self, topic: Topic) -> Optional[Snapshot]:
        key = _column_value(topic)
        if key is None:
            return None
        async with self.session_factory() as db:
            result = await db.execute(
                select(Booking.assigned_driver_id, Driver)
                .outerjoin(Driver, Driver.id == Booking.assigned_driver_id)
                .where(Booking.id == key)
            )
            row = result.first()
            if row is None:
                return None
            assignment = Assignment.from_raw(row.assigned_driver_id)
            driver = None
            if assignment.is_assigned and row.Driver is not None:
                driver = DriverRecord.model_validate(row.Driver)
        return Snapshot(assignment=assignment, driver=driver)

    async def ping(self) -> None:
        async with self.session_factory() as db:
            await db.execute(text("SELECT 1"))
