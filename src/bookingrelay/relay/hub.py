"""RelayHub — the single owner of subscription and topic state.

Learn: The registry and the state store are one shared resource. Every
operation that touches either runs under one asyncio.Lock, so:
- active_topics() never sees a topic whose handle set is mid-mutation
- a topic's state is dropped in the same critical section that drops the
  topic from the registry (state never outlives interest)
- the detector never writes state back for a topic that was unsubscribed
  while its query was in flight, even if it was subscribed again since
  (each subscription period of a topic gets a fresh epoch)

No I/O happens while the lock is held. Callers get copies (frozensets),
never the underlying maps.
"""

import asyncio
import itertools

import structlog

from bookingrelay.relay.registry import Handle, SubscriptionRegistry
from bookingrelay.relay.state import TopicStateStore
from bookingrelay.relay.types import (
    UNSEEN,
    Assignment,
    StoredValue,
    Topic,
    Transition,
    TransitionKind,
)

logger = structlog.get_logger()


class InvariantViolation(RuntimeError):
    """Topic state exists for a topic nobody is subscribed to."""


class RelayHub:
    """Lock-guarded subscription registry + topic state store."""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._registry = SubscriptionRegistry()
        self._state = TopicStateStore()
        self._lock = asyncio.Lock()
        self._epochs: dict[Topic, int] = {}
        self._epoch_counter = itertools.count(1)

    # ─── Subscriptions ──────────────────────────────────

    async def subscribe(self, topic: Topic, handle: Handle) -> bool:
        """Subscribe handle to topic. Idempotent; returns True if new."""
        async with self._lock:
            if topic not in self._registry:
                self._epochs[topic] = next(self._epoch_counter)
            return self._registry.subscribe(topic, handle)

    async def unsubscribe(self, topic: Topic, handle: Handle) -> bool:
        """Unsubscribe handle from topic. Returns True if the topic emptied."""
        async with self._lock:
            emptied = self._registry.unsubscribe(topic, handle)
            self._forget(emptied)
        return bool(emptied)

    async def drop_handle(self, handle: Handle) -> list[Topic]:
        """Remove handle from every topic. Safe to call more than once."""
        async with self._lock:
            emptied = self._registry.drop_handle(handle)
            self._forget(emptied)
        return emptied

    async def active_topics(self) -> frozenset:
        async with self._lock:
            return self._registry.active_topics()

    async def recipients(self, topic: Topic) -> frozenset:
        async with self._lock:
            return self._registry.recipients(topic)

    async def subscriber_counts(self) -> dict[Topic, int]:
        async with self._lock:
            return self._registry.subscriber_counts()

    def _forget(self, topics: list[Topic]) -> None:
        for topic in topics:
            self._state.clear(topic)
            self._epochs.pop(topic, None)

    # ─── Topic state ────────────────────────────────────

    async def stored_value(self, topic: Topic) -> StoredValue:
        async with self._lock:
            return self._state.get(topic)

    async def classify(self, topic: Topic, value: Assignment) -> Transition | None:
        """Compare a fresh assignment with the stored one.

        First observations and unchanged values are recorded immediately.
        A CHANGED transition is returned without touching the store; the
        caller records it with commit() once the change has been handled,
        so a failed follow-up read leaves the old value for the next tick.

        Returns None when the topic is no longer subscribed.
        """
        async with self._lock:
            if topic not in self._registry:
                return None
            previous = self._state.get(topic)
            if previous is UNSEEN:
                self._state.set(topic, value)
                kind = TransitionKind.FIRST_OBSERVATION
            elif previous == value:
                kind = TransitionKind.UNCHANGED
            else:
                kind = TransitionKind.CHANGED
            epoch = self._epochs[topic]
        return Transition(
            topic=topic,
            kind=kind,
            previous=previous,
            current=value,
            epoch=epoch,
        )

    async def commit(self, transition: Transition) -> bool:
        """Record a CHANGED transition's value.

        Refused when the topic was released after classify(), including
        when it has been subscribed again since.
        """
        async with self._lock:
            if self._epochs.get(transition.topic) != transition.epoch:
                return False
            self._state.set(transition.topic, transition.current)
            return True

    # ─── Invariants ─────────────────────────────────────

    async def check_invariants(self) -> list[Topic]:
        """Find state entries without a registry entry.

        Strict mode raises InvariantViolation; otherwise the orphans are
        deleted and returned.
        """
        async with self._lock:
            orphans = [t for t in self._state.topics() if t not in self._registry]
            if not orphans:
                return []
            if self.strict:
                raise InvariantViolation(
                    f"topic state outlived its subscriptions: {orphans!r}"
                )
            for topic in orphans:
                self._state.clear(topic)
        logger.error("hub.orphan_state_removed", topics=orphans)
        return orphans
