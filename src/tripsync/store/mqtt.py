"""Centralized real-time strategy backed by retained MQTT messages.

Every booking is a retained document on ``<prefix>/bookings/<id>`` and
every worker record one on ``<prefix>/workers/<id>/location``.  Each
store keeps a mirror of the retained state it has received; reads come
from the mirror and subscribers are re-delivered after every change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from tripsync._mqtt import MqttMessage, RetainedBus
from tripsync.exceptions import BookingNotFoundError
from tripsync.models.booking import Booking
from tripsync.models.location import WorkerLocationRecord
from tripsync.store.base import LocationChannel, TripStore, Unsubscribe, _now_ms

_logger = logging.getLogger(__name__)


def _topic_suffix(topic: str, prefix: str) -> str | None:
    if not topic.startswith(prefix):
        return None
    return topic[len(prefix) :] or None


class MqttTripStore(TripStore):
    """Bookings mirrored from ``<prefix>/bookings/+``."""

    def __init__(self, bus: RetainedBus, *, topic_prefix: str) -> None:
        super().__init__()
        self._bus = bus
        self._prefix = f"{topic_prefix.rstrip('/')}/bookings/"
        self._mirror: dict[str, Booking] = {}
        self._unlisten: Unsubscribe | None = bus.add_handler(f"{self._prefix}+", self._on_message)

    def topic_for(self, booking_id: str) -> str:
        return f"{self._prefix}{booking_id}"

    def _apply(self, booking_id: str, booking: Booking | None) -> bool:
        """Update the mirror; return whether anything changed."""
        if booking is None:
            return self._mirror.pop(booking_id, None) is not None
        if self._mirror.get(booking_id) == booking:
            return False
        self._mirror[booking_id] = booking
        return True

    def _on_message(self, message: MqttMessage) -> None:
        booking_id = _topic_suffix(message.topic, self._prefix)
        if booking_id is None:
            return
        booking: Booking | None = None
        if message.payload is not None:
            try:
                booking = Booking.model_validate(message.payload)
            except ValidationError:
                _logger.debug("Ignoring unreadable booking on %s", message.topic, exc_info=True)
                return
            if booking.id != booking_id:
                booking = booking.model_copy(update={"id": booking_id})
        if self._apply(booking_id, booking):
            self._notify()

    def _snapshot(self) -> list[Booking]:
        return list(self._mirror.values())

    async def _publish(self, booking: Booking) -> None:
        await self._bus.publish(self.topic_for(booking.id), booking.to_document())
        if self._apply(booking.id, booking):
            self._notify()

    async def _insert(self, booking: Booking) -> None:
        await self._publish(booking)

    async def _replace(self, booking: Booking) -> None:
        if booking.id not in self._mirror:
            raise BookingNotFoundError(booking.id)
        await self._publish(booking)

    async def close(self) -> None:
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None
        await super().close()


class MqttLocationChannel(LocationChannel):
    """Worker records mirrored from ``<prefix>/workers/+/location``."""

    def __init__(
        self,
        bus: RetainedBus,
        *,
        topic_prefix: str,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        super().__init__(clock=clock)
        self._bus = bus
        self._prefix = f"{topic_prefix.rstrip('/')}/workers/"
        self._mirror: dict[str, WorkerLocationRecord] = {}
        self._unlisten: Unsubscribe | None = bus.add_handler(f"{self._prefix}+/location", self._on_message)

    def topic_for(self, worker_id: str) -> str:
        return f"{self._prefix}{worker_id}/location"

    def _worker_id(self, topic: str) -> str | None:
        suffix = _topic_suffix(topic, self._prefix)
        if suffix is None or not suffix.endswith("/location"):
            return None
        return suffix[: -len("/location")] or None

    def _apply(self, worker_id: str, record: WorkerLocationRecord | None) -> bool:
        if record is None:
            return self._mirror.pop(worker_id, None) is not None
        if self._mirror.get(worker_id) == record:
            return False
        self._mirror[worker_id] = record
        return True

    def _on_message(self, message: MqttMessage) -> None:
        worker_id = self._worker_id(message.topic)
        if worker_id is None:
            return
        payload: Any = message.payload
        record = WorkerLocationRecord.from_document(worker_id, payload)
        if payload is not None and record is None:
            _logger.debug("Ignoring unreadable worker record on %s", message.topic)
            return
        if self._apply(worker_id, record):
            self._notify(worker_id)

    def _current(self, worker_id: str) -> WorkerLocationRecord | None:
        return self._mirror.get(worker_id)

    def _all(self) -> list[WorkerLocationRecord]:
        return [self._mirror[worker_id] for worker_id in sorted(self._mirror)]

    async def _store(self, record: WorkerLocationRecord) -> None:
        await self._bus.publish(self.topic_for(record.worker_id), record.to_document())
        if self._apply(record.worker_id, record):
            self._notify(record.worker_id)

    async def close(self) -> None:
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None
        await super().close()
