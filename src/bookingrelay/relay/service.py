"""Relay wiring — one object holding the hub and everything built on it."""

from dataclasses import dataclass

from bookingrelay.relay.detector import ChangeDetector
from bookingrelay.relay.dispatcher import BroadcastDispatcher
from bookingrelay.relay.hub import RelayHub
from bookingrelay.relay.lifecycle import ConnectionHandler
from bookingrelay.relay.source import AssignmentSource


@dataclass
class Relay:
    hub: RelayHub
    source: AssignmentSource
    dispatcher: BroadcastDispatcher
    detector: ChangeDetector
    connections: ConnectionHandler


def build_relay(
    source: AssignmentSource,
    poll_interval: float = 2.0,
    strict: bool = False,
) -> Relay:
    hub = RelayHub(strict=strict)
    dispatcher = BroadcastDispatcher(hub)
    return Relay(
        hub=hub,
        source=source,
        dispatcher=dispatcher,
        detector=ChangeDetector(hub, source, dispatcher, poll_interval=poll_interval),
        connections=ConnectionHandler(hub, source, dispatcher),
    )
