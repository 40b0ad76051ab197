from __future__ import annotations

from pathlib import Path

import pytest

from tripsync.dashboard import DashboardAggregator, compute_stats, nearby_workers
from tripsync.models.booking import Booking, BookingStatus
from tripsync.models.location import WorkerLocationRecord
from tripsync.models.stats import DashboardStats
from tripsync.store.local import LocalLocationChannel, LocalStorage, LocalTripStore


def test_stats_from_string_distances() -> None:
    bookings = [
        Booking.model_validate({"status": "completed", "distance": "10"}),
        Booking.model_validate({"status": "pending", "distance": "5"}),
    ]

    stats = compute_stats(bookings, [])

    assert stats.completed_trips == 1
    assert stats.total_trips == 2
    assert stats.total_revenue == 7.00
    assert stats.active_workers == 0


def test_missing_distance_is_billed_as_base_fare() -> None:
    stats = compute_stats([Booking(status=BookingStatus.COMPLETED)], [])
    assert stats.total_revenue == 2.0


def test_active_workers_counts_online_records() -> None:
    records = [
        WorkerLocationRecord(worker_id="w-1", is_online=True, status="idle"),
        WorkerLocationRecord(worker_id="w-2", is_online=False),
        WorkerLocationRecord(worker_id="w-3", is_online=True, status="accepted"),
    ]

    assert compute_stats([], records).active_workers == 2


def test_nearby_workers_filters_by_radius_and_orders_by_distance() -> None:
    center = (15.3694, 44.1910)
    records = [
        WorkerLocationRecord(worker_id="far", latitude=15.6, longitude=44.5, is_online=True),
        WorkerLocationRecord(worker_id="near", latitude=15.37, longitude=44.192, is_online=True),
        WorkerLocationRecord(worker_id="mid", latitude=15.38, longitude=44.2, is_online=True),
        WorkerLocationRecord(worker_id="offline", latitude=15.3694, longitude=44.1910, is_online=False),
        WorkerLocationRecord(worker_id="unknown", is_online=True),
    ]

    hits = nearby_workers(center, records, radius_km=5.0)

    assert [r.worker_id for r in hits] == ["near", "mid"]


@pytest.mark.asyncio
async def test_get_stats_and_live_watch(tmp_path: Path) -> None:
    storage = LocalStorage(tmp_path, poll_interval=0)
    store = LocalTripStore(storage)
    channel = LocalLocationChannel(storage)
    dashboard = DashboardAggregator(store, channel)
    seen: list[DashboardStats] = []

    unwatch = dashboard.watch(seen.append)
    booking_id = await store.create(Booking(service="delivery", distance=10.0))
    await store.update_status(booking_id, BookingStatus.COMPLETED, "w-1")
    await channel.publish("w-1", 15.0, 44.0, is_online=True, status="idle")
    unwatch()
    await channel.publish("w-2", 15.0, 44.0, is_online=True, status="idle")

    assert [(s.total_trips, s.completed_trips, s.active_workers, s.total_revenue) for s in seen] == [
        (0, 0, 0, 0.0),
        (1, 0, 0, 0.0),
        (1, 1, 0, 7.0),
        (1, 1, 1, 7.0),
    ]
    stats = await dashboard.get_stats()
    assert stats == DashboardStats(completed_trips=1, total_trips=1, active_workers=2, total_revenue=7.0)
