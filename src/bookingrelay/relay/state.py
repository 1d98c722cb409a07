"""Topic state store — last observed assignment per topic.

Learn: get() returns UNSEEN for a topic that has no entry, which is
different from a stored Unset assignment. The detector relies on that:
the first observation of a topic is recorded silently, later ones are
compared.

Not synchronized on its own; RelayHub guards it.
"""

from typing import Iterator

from bookingrelay.relay.types import UNSEEN, Assignment, StoredValue, Topic


class TopicStateStore:
    def __init__(self) -> None:
        self._values: dict[Topic, Assignment] = {}

    def get(self, topic: Topic) -> StoredValue:
        return self._values.get(topic, UNSEEN)

    def set(self, topic: Topic, value: Assignment) -> None:
        self._values[topic] = value

    def clear(self, topic: Topic) -> None:
        self._values.pop(topic, None)

    def topics(self) -> Iterator[Topic]:
        return iter(list(self._values))

    def __contains__(self, topic: Topic) -> bool:
        return topic in self._values

    def __len__(self) -> int:
        return len(self._values)
