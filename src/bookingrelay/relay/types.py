"""Value types shared by the relay components."""

import enum
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Union

Topic = Hashable
DriverId = Union[int, str]


class Unseen(enum.Enum):
    """Marker for a topic whose assignment has never been observed."""

    UNSEEN = "unseen"

    def __repr__(self) -> str:
        return "UNSEEN"


UNSEEN = Unseen.UNSEEN


@dataclass(frozen=True)
class Assignment:
    """Tagged driver assignment: Unset (driver_id None) or Assigned(driver_id).

    Learn: The bookings table says "no driver" with either NULL or 0.
    Raw column values are converted once, in from_raw(), at the source
    boundary; nothing past that point looks at nullable/zero ids again.
    """

    driver_id: Optional[DriverId] = None

    @property
    def is_assigned(self) -> bool:
        return self.driver_id is not None

    @classmethod
    def assigned(cls, driver_id: DriverId) -> "Assignment":
        return cls.from_raw(driver_id)

    @classmethod
    def from_raw(cls, value: Any) -> "Assignment":
        if value is None or value == 0 or value == "":
            return UNSET
        return cls(driver_id=value)

    def __repr__(self) -> str:
        if self.is_assigned:
            return f"Assigned({self.driver_id!r})"
        return "Unset"


UNSET = Assignment()

StoredValue = Union[Assignment, Unseen]


class TransitionKind(str, enum.Enum):
    FIRST_OBSERVATION = "first_observation"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass(frozen=True)
class Transition:
    """Outcome of comparing a fresh assignment with the stored one."""

    topic: Topic
    kind: TransitionKind
    previous: StoredValue
    current: Assignment
    epoch: int = 0
