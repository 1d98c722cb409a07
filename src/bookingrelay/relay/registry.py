"""Subscription registry — topic → set of subscriber handles.

Learn: Two maps are kept in step:
- topic → handles (who gets a broadcast)
- handle → topics (so a disconnect can clean up without scanning every topic)

A topic key exists only while its handle set is non-empty. Mutations
return the topics that just became empty so the caller can drop their
state in the same critical section.

Not synchronized on its own; RelayHub guards it.
"""

from typing import Hashable

from bookingrelay.relay.types import Topic

Handle = Hashable


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._by_topic: dict[Topic, set[Handle]] = {}
        self._by_handle: dict[Handle, set[Topic]] = {}

    def subscribe(self, topic: Topic, handle: Handle) -> bool:
        """Add handle to topic. Returns True if it was not subscribed yet."""
        handles = self._by_topic.setdefault(topic, set())
        if handle in handles:
            return False
        handles.add(handle)
        self._by_handle.setdefault(handle, set()).add(topic)
        return True

    def unsubscribe(self, topic: Topic, handle: Handle) -> list[Topic]:
        """Remove handle from topic. Returns [topic] if the topic emptied."""
        handles = self._by_topic.get(topic)
        if handles is None or handle not in handles:
            return []
        handles.discard(handle)

        topics = self._by_handle.get(handle)
        if topics is not None:
            topics.discard(topic)
            if not topics:
                del self._by_handle[handle]

        if not handles:
            del self._by_topic[topic]
            return [topic]
        return []

    def drop_handle(self, handle: Handle) -> list[Topic]:
        """Remove handle from every topic. Returns the topics that emptied."""
        emptied = []
        for topic in self._by_handle.pop(handle, set()):
            handles = self._by_topic.get(topic)
            if handles is None:
                continue
            handles.discard(handle)
            if not handles:
                del self._by_topic[topic]
                emptied.append(topic)
        return emptied

    def active_topics(self) -> frozenset:
        return frozenset(self._by_topic)

    def recipients(self, topic: Topic) -> frozenset:
        return frozenset(self._by_topic.get(topic, ()))

    def topics_for(self, handle: Handle) -> frozenset:
        return frozenset(self._by_handle.get(handle, ()))

    def subscriber_counts(self) -> dict[Topic, int]:
        return {topic: len(handles) for topic, handles in self._by_topic.items()}

    def __contains__(self, topic: Topic) -> bool:
        return topic in self._by_topic

    def __len__(self) -> int:
        return len(self._by_topic)
