"""Persistence and notification layer.

Two interchangeable strategies implement :class:`TripStore` and
:class:`LocationChannel`: a centralized MQTT store with retained
documents, and a local fallback sharing JSON documents between the
processes of one device.  :func:`create_backend` selects one of them
from configuration, once.
"""

from tripsync.store.base import LocationChannel, SubscriberSet, TripStore, Unsubscribe
from tripsync.store.factory import Backend, create_backend

__all__ = [
    "Backend",
    "LocationChannel",
    "SubscriberSet",
    "TripStore",
    "Unsubscribe",
    "create_backend",
]
