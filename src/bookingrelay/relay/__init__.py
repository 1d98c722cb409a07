"""Subscription registry and change-detection/broadcast engine.

Learn: The relay has one piece of shared mutable state: which connections
watch which bookings, and the last assignment seen for each. Two kinds
of actors touching it:
1. Connection handlers (subscribe / unsubscribe / disconnect)
2. The change detector (one polling tick every few seconds)

RelayHub owns that state behind a lock. Everything else (detector,
dispatcher, lifecycle handler) goes through the hub's methods.
"""
