"""Booking relay — real-time driver assignment notifications.

Clients subscribe to a booking over a WebSocket; a polling detector watches
the bookings table and pushes driver assignment changes to every subscriber.
"""

__version__ = "0.1.0"
