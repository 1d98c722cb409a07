"""Change detector — polls the source and broadcasts assignment changes.

Learn: One tick every poll_interval seconds:

  active topics → one batched read → classify each row → broadcast changes

- No subscribers → no query at all.
- First observation of a topic is stored silently (the subscriber already
  got a current_state snapshot when it subscribed).
- Same value as last tick → nothing.
- Different value → fetch the driver (if any) and broadcast "assigned".
  A missing driver is still broadcast, with driver: null.
- A booking missing from the query result is left alone.

A failed read aborts that tick only; stored state is untouched and the
next tick retries. The loop is the only retry mechanism.

The detector only depends on the AssignmentSource protocol, so a push
based source can replace polling without touching the hub or dispatcher.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from bookingrelay.events.types import ASSIGNED
from bookingrelay.relay.dispatcher import BroadcastDispatcher
from bookingrelay.relay.hub import InvariantViolation, RelayHub
from bookingrelay.relay.source import AssignmentSource
from bookingrelay.relay.types import Transition, TransitionKind
from bookingrelay.schemas.messages import RelayEvent

logger = structlog.get_logger()


@dataclass
class DetectorStats:
    """Runtime statistics for monitoring."""
    ticks: int = 0
    idle_ticks: int = 0
    queries: int = 0
    transitions: int = 0
    deliveries: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None
    last_tick_at: Optional[datetime] = None


class ChangeDetector:
    """Polling loop that turns assignment changes into broadcasts.

    Usage:
        detector = ChangeDetector(hub, source, dispatcher, poll_interval=2.0)
        asyncio.create_task(detector.run_loop())
    """

    def __init__(
        self,
        hub: RelayHub,
        source: AssignmentSource,
        dispatcher: BroadcastDispatcher,
        poll_interval: float = 2.0,
    ):
        self.hub = hub
        self.source = source
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self.stats = DetectorStats()
        self._running = False

    async def run_loop(self) -> None:
        """Tick, sleep, repeat until stop()."""
        self._running = True
        self.stats.started_at = datetime.now(timezone.utc)
        logger.info("detector.started", poll_interval=self.poll_interval)

        while self._running:
            try:
                await self.tick()
            except InvariantViolation:
                self._running = False
                logger.exception("detector.invariant_violation")
                raise
            except Exception:
                self.stats.errors += 1
                logger.exception("detector.tick_failed")
            await asyncio.sleep(self.poll_interval)

    def stop(self) -> None:
        """Signal the loop to stop after the current tick."""
        self._running = False
        logger.info("detector.stopping")

    async def tick(self) -> list[Transition]:
        """Run one polling cycle. Returns the changes that were broadcast."""
        self.stats.ticks += 1
        self.stats.last_tick_at = datetime.now(timezone.utc)

        await self.hub.check_invariants()

        topics = await self.hub.active_topics()
        if not topics:
            self.stats.idle_ticks += 1
            return []

        self.stats.queries += 1
        current = await self.source.read_assignments(topics)

        changes = []
        for topic, value in current.items():
            transition = await self.hub.classify(topic, value)
            if transition is None or transition.kind is not TransitionKind.CHANGED:
                continue
            try:
                announced = await self._announce(transition)
            except Exception:
                self.stats.errors += 1
                logger.exception("detector.announce_failed", topic=topic)
                continue
            if announced:
                changes.append(transition)
        return changes

    async def _announce(self, transition: Transition) -> bool:
        topic, current = transition.topic, transition.current
        log = logger.bind(topic=topic, previous=repr(transition.previous), current=repr(current))

        driver = None
        if current.is_assigned:
            driver = await self.source.read_driver(current.driver_id)
            if driver is None:
                log.warning("detector.driver_missing")

        if not await self.hub.commit(transition):
            # Released (and possibly re-subscribed) while the driver was being read.
            return False

        self.stats.transitions += 1
        event = RelayEvent(kind=ASSIGNED, topic=topic, driver=driver)
        delivered = await self.dispatcher.broadcast(topic, event)
        self.stats.deliveries += delivered
        log.info("detector.assignment_changed", delivered=delivered)
        return True

    def get_stats(self) -> dict:
        """Return detector statistics for the health endpoint."""
        return {
            "running": self._running,
            "poll_interval": self.poll_interval,
            "ticks": self.stats.ticks,
            "idle_ticks": self.stats.idle_ticks,
            "queries": self.stats.queries,
            "transitions": self.stats.transitions,
            "deliveries": self.stats.deliveries,
            "errors": self.stats.errors,
            "started_at": (
                self.stats.started_at.isoformat()
                if self.stats.started_at
                else None
            ),
            "last_tick_at": (
                self.stats.last_tick_at.isoformat()
                if self.stats.last_tick_at
                else None
            ),
        }
