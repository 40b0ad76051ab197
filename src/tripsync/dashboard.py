"""Read-only aggregates for the observer."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from tripsync.models._base import LatLng
from tripsync.models.booking import Booking, BookingStatus
from tripsync.models.location import WorkerLocationRecord
from tripsync.models.stats import DashboardStats
from tripsync.routing.fallback import haversine_km
from tripsync.store.base import LocationChannel, SubscriberSet, TripStore, Unsubscribe

_logger = logging.getLogger(__name__)

StatsCallback = Callable[[DashboardStats], None]


def compute_stats(bookings: Iterable[Booking], records: Iterable[WorkerLocationRecord]) -> DashboardStats:
    """Aggregate a booking snapshot and the worker records.

    Revenue is the sum of fares of completed bookings.
    """
    all_bookings = list(bookings)
    completed = [b for b in all_bookings if b.status == BookingStatus.COMPLETED]
    return DashboardStats(
        completed_trips=len(completed),
        total_trips=len(all_bookings),
        active_workers=sum(1 for record in records if record.is_online),
        total_revenue=round(sum(b.fare for b in completed), 2),
    )


def nearby_workers(
    center: LatLng,
    records: Iterable[WorkerLocationRecord],
    radius_km: float = 5.0,
) -> list[WorkerLocationRecord]:
    """Online workers with a known position within *radius_km*, nearest first."""
    hits: list[tuple[float, WorkerLocationRecord]] = []
    for record in records:
        point = record.point
        if not record.is_online or point is None:
            continue
        distance = haversine_km(center, point)
        if distance <= radius_km:
            hits.append((distance, record))
    hits.sort(key=lambda hit: (hit[0], hit[1].worker_id))
    return [record for _, record in hits]


class DashboardAggregator:
    """Live statistics over a trip store and a location channel."""

    def __init__(self, store: TripStore, channel: LocationChannel) -> None:
        self._store = store
        self._channel = channel

    async def get_stats(self) -> DashboardStats:
        bookings = await self._store.list_bookings()
        records = await self._channel.records()
        return compute_stats(bookings, records)

    def watch(self, callback: StatsCallback) -> Unsubscribe:
        """Deliver statistics now and after every booking or worker change."""
        subscribers: SubscriberSet[DashboardStats] = SubscriberSet("dashboard")
        subscribers.add(callback)
        latest_bookings: list[Booking] | None = None
        latest_records: list[WorkerLocationRecord] | None = None

        def _emit() -> None:
            if latest_bookings is None or latest_records is None:
                return
            subscribers.notify(compute_stats(latest_bookings, latest_records))

        def _on_bookings(bookings: list[Booking]) -> None:
            nonlocal latest_bookings
            latest_bookings = bookings
            _emit()

        def _on_records(records: list[WorkerLocationRecord]) -> None:
            nonlocal latest_records
            latest_records = records
            _emit()

        unsubscribe_bookings = self._store.subscribe(_on_bookings)
        unsubscribe_records = self._channel.subscribe_all(_on_records)

        def _unsubscribe() -> None:
            unsubscribe_bookings()
            unsubscribe_records()
            subscribers.clear()

        return _unsubscribe
