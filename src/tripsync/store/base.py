"""Store interfaces shared by every persistence strategy.

Both strategies (centralized MQTT and local files) implement the same two
abstract classes, so callers never branch on the backend after startup.
Subclasses only provide the storage primitives; subscription, ordering,
merge and outcome semantics live here.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from tripsync.exceptions import BackendUnavailableError, BookingNotFoundError, TripSyncTransportError
from tripsync.models.booking import Booking, BookingStatus, sort_bookings
from tripsync.models.location import LocationPatch, WorkerLocationRecord, WorkerStatus
from tripsync.models.outcome import WriteResult
from tripsync.store.policy import merge_location, new_booking_id

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]
BookingsCallback = Callable[[list[Booking]], None]
LocationCallback = Callable[[WorkerLocationRecord], None]
RecordsCallback = Callable[[list[WorkerLocationRecord]], None]


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class SubscriberSet(Generic[T]):
    """Ordered set of callbacks receiving values of one kind.

    A failing callback is logged and skipped; it never prevents delivery
    to the remaining subscribers.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._callbacks: dict[int, Callable[[T], None]] = {}
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callable[[T], None]) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        self._callbacks[token] = callback

        def _unsubscribe() -> None:
            self._callbacks.pop(token, None)

        return _unsubscribe

    def deliver(self, callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            _logger.debug("%s subscriber callback failed", self._name, exc_info=True)

    def notify(self, value: T) -> None:
        for callback in list(self._callbacks.values()):
            self.deliver(callback, value)

    def clear(self) -> None:
        self._callbacks.clear()


class TripStore(ABC):
    """Durable booking records with change notification."""

    def __init__(self) -> None:
        self._subscribers: SubscriberSet[list[Booking]] = SubscriberSet("bookings")

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _snapshot(self) -> list[Booking]:
        """Return the strategy's current view of all bookings (any order)."""

    @abstractmethod
    async def _insert(self, booking: Booking) -> None:
        """Persist a new booking; raise ``TripSyncTransportError`` on failure."""

    @abstractmethod
    async def _replace(self, booking: Booking) -> None:
        """Persist an updated booking; raise ``TripSyncTransportError`` on failure."""

    async def start(self) -> None:
        """Begin receiving changes.  Strategies without background work need nothing."""

    async def close(self) -> None:
        self._subscribers.clear()

    async def __aenter__(self) -> TripStore:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Reads and subscriptions
    # ------------------------------------------------------------------

    def _find(self, booking_id: str) -> Booking | None:
        for booking in self._snapshot():
            if booking.id == booking_id:
                return booking
        return None

    def _sorted(self) -> list[Booking]:
        return sort_bookings(self._snapshot())

    def _notify(self) -> None:
        if self._subscribers:
            self._subscribers.notify(self._sorted())

    async def list_bookings(self) -> list[Booking]:
        """All bookings, newest first."""
        return self._sorted()

    async def get(self, booking_id: str) -> Booking | None:
        return self._find(booking_id)

    def subscribe(self, callback: BookingsCallback) -> Unsubscribe:
        """Deliver the full booking list now and after every change.

        The list is ordered by creation time, newest first.
        """
        unsubscribe = self._subscribers.add(callback)
        self._subscribers.deliver(callback, self._sorted())
        return unsubscribe

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, booking: Booking) -> str:
        """Persist a new pending booking and return its assigned id.

        Raises
        ------
        BackendUnavailableError
            If the backend cannot accept the write.
        """
        created = booking.model_copy(
            update={
                "id": new_booking_id(booking.created_at),
                "status": BookingStatus.PENDING,
                "worker_id": None,
                "rating": None,
            }
        )
        try:
            await self._insert(created)
        except BackendUnavailableError:
            raise
        except TripSyncTransportError as exc:
            raise BackendUnavailableError(
                f"Booking could not be created: {exc}",
                status_code=exc.status_code,
                endpoint=exc.endpoint,
            ) from exc
        _logger.debug("Created booking id=%s service=%s", created.id, created.service)
        return created.id

    async def _update(
        self,
        booking_id: str,
        changes: dict[str, Any],
        *,
        expected_status: BookingStatus | None = None,
    ) -> WriteResult:
        current = self._find(booking_id)
        if current is None:
            _logger.debug("Ignoring update of unknown booking id=%s", booking_id)
            return WriteResult.not_found(booking_id)
        if expected_status is not None and current.status != expected_status:
            return WriteResult.rejected(
                booking_id,
                f"status is {current.status.value}, expected {BookingStatus(expected_status).value}",
            )

        updated = current.model_copy(update=changes)
        if updated == current:
            return WriteResult.success(booking_id)
        try:
            await self._replace(updated)
        except BookingNotFoundError:
            _logger.debug("Booking id=%s disappeared before update", booking_id)
            return WriteResult.not_found(booking_id)
        except TripSyncTransportError as exc:
            _logger.debug("Update of booking id=%s failed", booking_id, exc_info=True)
            return WriteResult.transport_error(booking_id, str(exc))
        return WriteResult.success(booking_id)

    async def update_status(
        self,
        booking_id: str,
        new_status: BookingStatus | str,
        worker_id: str | None = None,
        *,
        expected_status: BookingStatus | str | None = None,
    ) -> WriteResult:
        """Set the status (and worker id, when given) of a booking.

        With *expected_status* the write only happens while the store still
        holds that status; otherwise the result is ``REJECTED``.
        """
        changes: dict[str, Any] = {"status": BookingStatus(new_status)}
        if worker_id is not None:
            changes["worker_id"] = worker_id
        expected = BookingStatus(expected_status) if expected_status is not None else None
        return await self._update(booking_id, changes, expected_status=expected)

    async def update_rating(self, booking_id: str, rating: int) -> WriteResult:
        """Set the rating of a booking.  Last write wins."""
        return await self._update(booking_id, {"rating": int(rating)})


class LocationChannel(ABC):
    """One current-position record per worker, with change notification.

    A subscriber to a worker without a record receives no initial
    callback; the first delivery happens on that worker's first publish.
    """

    def __init__(self, *, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock
        self._worker_subscribers: dict[str, SubscriberSet[WorkerLocationRecord]] = {}
        self._all_subscribers: SubscriberSet[list[WorkerLocationRecord]] = SubscriberSet("worker-locations")

    @abstractmethod
    def _current(self, worker_id: str) -> WorkerLocationRecord | None:
        """Return the strategy's current record for *worker_id*."""

    @abstractmethod
    def _all(self) -> list[WorkerLocationRecord]:
        """Return every known record."""

    @abstractmethod
    async def _store(self, record: WorkerLocationRecord) -> None:
        """Persist a full record; raise ``TripSyncTransportError`` on failure."""

    async def start(self) -> None:
        """Begin receiving changes."""

    async def close(self) -> None:
        self._worker_subscribers.clear()
        self._all_subscribers.clear()

    def _notify(self, worker_id: str) -> None:
        subscribers = self._worker_subscribers.get(worker_id)
        if subscribers:
            record = self._current(worker_id)
            if record is not None:
                subscribers.notify(record)
        if self._all_subscribers:
            self._all_subscribers.notify(self._all())

    async def get(self, worker_id: str) -> WorkerLocationRecord | None:
        return self._current(worker_id)

    async def records(self) -> list[WorkerLocationRecord]:
        return self._all()

    def subscribe(self, worker_id: str, callback: LocationCallback) -> Unsubscribe:
        """Deliver the worker's record now (if any) and on every publish."""
        subscribers = self._worker_subscribers.get(worker_id)
        if subscribers is None:
            subscribers = SubscriberSet(f"worker-location:{worker_id}")
            self._worker_subscribers[worker_id] = subscribers
        unsubscribe = subscribers.add(callback)
        record = self._current(worker_id)
        if record is not None:
            subscribers.deliver(callback, record)
        return unsubscribe

    def subscribe_all(self, callback: RecordsCallback) -> Unsubscribe:
        """Deliver all records now (possibly none) and after every change."""
        unsubscribe = self._all_subscribers.add(callback)
        self._all_subscribers.deliver(callback, self._all())
        return unsubscribe

    async def publish(
        self,
        worker_id: str,
        lat: float | None = None,
        lng: float | None = None,
        is_online: bool | None = None,
        status: str | None = None,
    ) -> WriteResult:
        """Upsert the worker's record; omitted fields keep their stored values.

        Going offline without an explicit status broadcasts ``offline``.
        """
        if is_online is False and status is None:
            status = WorkerStatus.OFFLINE.value
        patch = LocationPatch(latitude=lat, longitude=lng, is_online=is_online, status=status)
        record = merge_location(self._current(worker_id), worker_id, patch, timestamp=self._clock())
        try:
            await self._store(record)
        except TripSyncTransportError as exc:
            _logger.debug("Location publish for worker=%s failed", worker_id, exc_info=True)
            return WriteResult.transport_error(None, str(exc))
        return WriteResult.success()
