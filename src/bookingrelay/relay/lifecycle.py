"""Connection lifecycle handler — inbound frames → hub mutations.

Learn: Each connection feeds its frames through handle_message():
- subscribe   → hub.subscribe, then push a current_state snapshot to this
                handle only (no waiting for the next poll tick); broadcasts
                for the topic reach this handle only after the snapshot
- unsubscribe → hub.unsubscribe
- ping        → pong, to this handle only
and calls disconnect() exactly once when the transport closes.

Bad frames (not JSON, unknown kind, missing topic) are logged and
dropped; the connection stays open.
"""

import json
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from bookingrelay.events.types import CURRENT_STATE, PING, PONG, SUBSCRIBE, UNSUBSCRIBE
from bookingrelay.relay.dispatcher import BroadcastDispatcher
from bookingrelay.relay.handles import SubscriberHandle
from bookingrelay.relay.hub import RelayHub
from bookingrelay.relay.source import AssignmentSource
from bookingrelay.relay.types import Topic
from bookingrelay.schemas.messages import InboundMessage, RelayEvent

logger = structlog.get_logger()


class ConnectionHandler:
    def __init__(
        self,
        hub: RelayHub,
        source: AssignmentSource,
        dispatcher: BroadcastDispatcher,
    ):
        self.hub = hub
        self.source = source
        self.dispatcher = dispatcher

    async def handle_message(
        self, handle: SubscriberHandle, raw: Union[str, bytes]
    ) -> None:
        try:
            message = InboundMessage.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(
                "relay.malformed_message",
                connection_id=handle.id,
                error=str(e),
            )
            return

        if message.legacy:
            handle.legacy = True

        if message.kind == SUBSCRIBE:
            await self.subscribe(handle, message.topic)
        elif message.kind == UNSUBSCRIBE:
            await self.unsubscribe(handle, message.topic)
        elif message.kind == PING:
            await handle.send(json.dumps({"kind": PONG}))

    async def subscribe(self, handle: SubscriberHandle, topic: Topic) -> None:
        self.dispatcher.hold(handle, topic)
        added = await self.hub.subscribe(topic, handle)
        logger.info(
            "relay.subscribed",
            connection_id=handle.id,
            topic=topic,
            already_subscribed=not added,
        )
        await self.push_snapshot(handle, topic)

    async def unsubscribe(self, handle: SubscriberHandle, topic: Topic) -> None:
        emptied = await self.hub.unsubscribe(topic, handle)
        logger.info(
            "relay.unsubscribed",
            connection_id=handle.id,
            topic=topic,
            topic_released=emptied,
        )

    async def disconnect(self, handle: SubscriberHandle) -> None:
        released = await self.hub.drop_handle(handle)
        logger.info(
            "relay.disconnected",
            connection_id=handle.id,
            topics_released=len(released),
        )

    async def push_snapshot(self, handle: SubscriberHandle, topic: Topic) -> bool:
        """Send the topic's current assignment to one handle.

        Broadcasts held for this handle since subscribe() follow the
        snapshot, or are sent on their own if there is no snapshot.
        """
        event = None
        try:
            event = await self._snapshot_event(handle, topic)
        finally:
            sent = await self.dispatcher.release(handle, topic, first=event)
        return sent

    async def _snapshot_event(
        self, handle: SubscriberHandle, topic: Topic
    ) -> Optional[RelayEvent]:
        try:
            snapshot = await self.source.read_snapshot(topic)
        except Exception:
            logger.exception(
                "relay.snapshot_failed", connection_id=handle.id, topic=topic
            )
            return None

        if snapshot is None:
            logger.info("relay.snapshot_missing", connection_id=handle.id, topic=topic)
            return None

        return RelayEvent(kind=CURRENT_STATE, topic=topic, driver=snapshot.driver)
