"""Pydantic schemas for WebSocket frames.

Learn: One schema per direction:
- InboundMessage: what a client sends (subscribe / unsubscribe / ping)
- RelayEvent: what the relay pushes (current_state / assigned)
- DriverRecord: the driver payload embedded in a RelayEvent

Both directions also speak the legacy dialect
({type: "SUBSCRIBE_BOOKING", bookingId} in, {type: "DRIVER_ASSIGNED", ...} out).
Inbound legacy frames are normalized here; outbound ones are produced by
RelayEvent.to_wire(legacy=True).
"""

import json
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator

from bookingrelay.events.types import LEGACY_INBOUND, LEGACY_OUTBOUND, PING

TopicValue = Union[StrictInt, StrictStr]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Inbound ─────────────────────────────────────────────

class InboundMessage(BaseModel):
    kind: Literal["subscribe", "unsubscribe", "ping"]
    topic: Optional[TopicValue] = None
    legacy: bool = False

    @model_validator(mode="before")
    @classmethod
    def translate_legacy(cls, data: Any) -> Any:
        if (
            isinstance(data, dict)
            and "kind" not in data
            and data.get("type") in LEGACY_INBOUND
        ):
            return {
                "kind": LEGACY_INBOUND[data["type"]],
                "topic": data.get("bookingId"),
                "legacy": True,
            }
        return data

    @model_validator(mode="after")
    def require_topic(self):
        if self.kind != PING and self.topic is None:
            raise ValueError(f"{self.kind} requires a topic")
        return self


# ─── Outbound ────────────────────────────────────────────

class DriverRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Union[int, str]
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class RelayEvent(BaseModel):
    """An outbound notification. driver is None when no driver is assigned
    or the assigned driver no longer exists."""

    kind: Literal["current_state", "assigned"]
    topic: Any
    driver: Optional[DriverRecord] = None
    timestamp: datetime = Field(default_factory=utcnow)

    def to_wire(self, legacy: bool = False) -> str:
        data = self.model_dump(mode="json")
        if not legacy:
            return json.dumps(data)
        return json.dumps({
            "type": LEGACY_OUTBOUND[self.kind],
            "bookingId": data["topic"],
            "driver": data["driver"],
            "timestamp": data["timestamp"],
        })
