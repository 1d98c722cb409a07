"""Broadcast dispatcher — fan-out of one event to a topic's subscribers.

Learn: Recipients are resolved from the hub at delivery time, never
cached. Each frame is serialized at most once per dialect (standard /
legacy) no matter how many subscribers there are. A handle that is closed,
or whose send fails, is skipped; nothing raises past broadcast().

A handle that has just subscribed is owed a current_state snapshot before
any broadcast for that topic. The lifecycle handler calls hold() before
subscribing and release() with the snapshot once it has been read;
broadcasts arriving in between are queued and sent after the snapshot.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from bookingrelay.relay.handles import SubscriberHandle
from bookingrelay.relay.hub import RelayHub
from bookingrelay.relay.types import Topic
from bookingrelay.schemas.messages import RelayEvent

logger = structlog.get_logger()


@dataclass
class DeliveryStats:
    broadcasts: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0
    held: int = 0


class BroadcastDispatcher:
    def __init__(self, hub: RelayHub):
        self.hub = hub
        self.stats = DeliveryStats()
        self._held: dict[tuple[SubscriberHandle, Topic], list[RelayEvent]] = {}

    async def broadcast(self, topic: Topic, event: RelayEvent) -> int:
        """Deliver event to every current subscriber of topic.

        Returns the number of handles that accepted the frame. Frames queued
        for a handle still waiting on its snapshot are not counted.
        """
        recipients = await self.hub.recipients(topic)
        self.stats.broadcasts += 1
        if not recipients:
            return 0

        ready = []
        for handle in recipients:
            queue = self._held.get((handle, topic))
            if queue is None:
                ready.append(handle)
            else:
                queue.append(event)
                self.stats.held += 1

        frames: dict[bool, str] = {}
        results = await asyncio.gather(
            *(self._deliver(handle, event, frames) for handle in ready)
        )
        delivered = sum(results)
        logger.debug(
            "dispatch.broadcast",
            topic=topic,
            kind=event.kind,
            recipients=len(recipients),
            delivered=delivered,
        )
        return delivered

    # ─── Snapshot ordering ──────────────────────────────

    def hold(self, handle: SubscriberHandle, topic: Topic) -> None:
        """Queue broadcasts of topic to handle until release()."""
        self._held.setdefault((handle, topic), [])

    async def release(
        self,
        handle: SubscriberHandle,
        topic: Topic,
        first: Optional[RelayEvent] = None,
    ) -> bool:
        """Send first (if any), then every broadcast held for (handle, topic).

        Returns whether first was delivered.
        """
        key = (handle, topic)
        queue = self._held.setdefault(key, [])
        try:
            sent = False
            if first is not None:
                sent = bool(await self._deliver(handle, first, {}))
            while queue:
                await self._deliver(handle, queue.pop(0), {})
        finally:
            self._held.pop(key, None)
        return sent

    # ─── Delivery ───────────────────────────────────────

    async def _deliver(
        self, handle: SubscriberHandle, event: RelayEvent, frames: dict[bool, str]
    ) -> int:
        try:
            if not handle.is_open():
                self.stats.skipped += 1
                return 0

            legacy = bool(getattr(handle, "legacy", False))
            frame = frames.get(legacy)
            if frame is None:
                frame = frames[legacy] = event.to_wire(legacy=legacy)

            ok = await handle.send(frame)
        except Exception:
            self.stats.failed += 1
            logger.warning(
                "dispatch.send_failed",
                topic=event.topic,
                handle=repr(handle),
                exc_info=True,
            )
            return 0

        if not ok:
            self.stats.skipped += 1
            return 0
        self.stats.delivered += 1
        return 1
