from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from tripsync.exceptions import BackendUnavailableError
from tripsync.models.booking import Booking, BookingStatus
from tripsync.models.location import WorkerLocationRecord
from tripsync.models.outcome import WriteOutcome
from tripsync.store.local import LocalLocationChannel, LocalStorage, LocalTripStore


def _storage(path: Path) -> LocalStorage:
    return LocalStorage(path, poll_interval=0)


def _booking(**kwargs: object) -> Booking:
    return Booking(service="delivery", pickup=(15.0, 44.0), drop=(15.1, 44.1), **kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_create_forces_pending_and_clears_worker(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))

    booking_id = await store.create(_booking(id="ignored", status=BookingStatus.COMPLETED, worker_id="w-9", rating=3))

    created = await store.get(booking_id)
    assert created is not None
    assert booking_id != "ignored"
    assert created.status == BookingStatus.PENDING
    assert created.worker_id is None
    assert created.rating is None
    raw = json.loads((tmp_path / "bookingsList.json").read_text(encoding="utf-8"))
    assert raw[0]["id"] == booking_id


@pytest.mark.asyncio
async def test_subscribe_delivers_immediately_and_after_each_change(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))
    snapshots: list[list[str]] = []

    unsubscribe = store.subscribe(lambda bookings: snapshots.append([b.id for b in bookings]))
    first = await store.create(_booking(created_at=datetime(2026, 1, 1, tzinfo=UTC)))
    second = await store.create(_booking(created_at=datetime(2026, 1, 2, tzinfo=UTC)))
    unsubscribe()
    unsubscribe()
    await store.update_status(first, BookingStatus.CANCELLED)

    assert snapshots == [[], [first], [second, first]]


@pytest.mark.asyncio
async def test_two_subscribes_deliver_identical_snapshots(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))
    await store.create(_booking())
    await store.create(_booking())
    first: list[list[Booking]] = []
    second: list[list[Booking]] = []

    store.subscribe(first.append)
    store.subscribe(second.append)

    assert first == second
    assert len(first[0]) == 2


@pytest.mark.asyncio
async def test_update_status_unknown_id_is_not_found(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))

    result = await store.update_status("missing", BookingStatus.ACCEPTED, "w-1")

    assert result.outcome == WriteOutcome.NOT_FOUND
    assert not result.ok


@pytest.mark.asyncio
async def test_conditional_update_rejects_when_status_moved_on(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))
    booking_id = await store.create(_booking())

    first = await store.update_status(
        booking_id, BookingStatus.ACCEPTED, "w-1", expected_status=BookingStatus.PENDING
    )
    second = await store.update_status(
        booking_id, BookingStatus.ACCEPTED, "w-2", expected_status=BookingStatus.PENDING
    )

    assert first.ok
    assert second.outcome == WriteOutcome.REJECTED
    stored = await store.get(booking_id)
    assert stored is not None
    assert stored.worker_id == "w-1"


@pytest.mark.asyncio
async def test_repeated_rating_is_a_silent_success(tmp_path: Path) -> None:
    store = LocalTripStore(_storage(tmp_path))
    booking_id = await store.create(_booking())
    deliveries: list[int] = []
    store.subscribe(lambda bookings: deliveries.append(len(bookings)))

    assert (await store.update_rating(booking_id, 4)).ok
    assert (await store.update_rating(booking_id, 4)).ok
    assert (await store.update_rating(booking_id, 2)).ok

    stored = await store.get(booking_id)
    assert stored is not None
    assert stored.rating == 2
    assert len(deliveries) == 3


@pytest.mark.asyncio
async def test_change_from_another_process_is_redelivered(tmp_path: Path) -> None:
    writer_storage = _storage(tmp_path)
    reader_storage = _storage(tmp_path)
    writer = LocalTripStore(writer_storage)
    reader = LocalTripStore(reader_storage)
    seen: list[int] = []
    reader.subscribe(lambda bookings: seen.append(len(bookings)))

    await writer.create(_booking())
    assert seen == [0]

    assert reader_storage.check_external() == ["bookingsList"]
    assert seen == [0, 1]
    assert reader_storage.check_external() == []


@pytest.mark.asyncio
async def test_corrupt_document_reads_as_empty(tmp_path: Path) -> None:
    (tmp_path / "bookingsList.json").write_text("{not json", encoding="utf-8")
    store = LocalTripStore(_storage(tmp_path))

    assert await store.list_bookings() == []


@pytest.mark.asyncio
async def test_unwritable_directory_raises_backend_unavailable(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = LocalTripStore(_storage(blocker / "store"))

    with pytest.raises(BackendUnavailableError):
        await store.create(_booking())


@pytest.mark.asyncio
async def test_directory_behind_a_file_still_builds_stores(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    storage = _storage(blocker / "store")
    store = LocalTripStore(storage)
    channel = LocalLocationChannel(storage)

    assert await store.list_bookings() == []
    assert storage.check_external() == []
    result = await channel.publish("w-1", 15.3, 44.2, is_online=True)
    assert result.outcome == WriteOutcome.TRANSPORT_ERROR


@pytest.mark.asyncio
async def test_location_publish_merges_and_offline_sets_status(tmp_path: Path) -> None:
    ticks = iter([1000, 2000])
    channel = LocalLocationChannel(_storage(tmp_path), clock=lambda: next(ticks))

    await channel.publish("w-1", 15.3, 44.2, is_online=True, status="idle")
    result = await channel.publish("w-1", is_online=False)

    record = await channel.get("w-1")
    assert result.ok
    assert record == WorkerLocationRecord(
        worker_id="w-1",
        latitude=15.3,
        longitude=44.2,
        is_online=False,
        status="offline",
        timestamp=2000,
    )


@pytest.mark.asyncio
async def test_location_subscribe_skips_initial_callback_without_record(tmp_path: Path) -> None:
    channel = LocalLocationChannel(_storage(tmp_path))
    received: list[WorkerLocationRecord] = []

    channel.subscribe("w-1", received.append)
    assert received == []

    await channel.publish("w-1", 15.0, 44.0, is_online=True, status="idle")
    await channel.publish("w-2", 16.0, 45.0, is_online=True, status="idle")

    assert [r.worker_id for r in received] == ["w-1"]
    late: list[WorkerLocationRecord] = []
    channel.subscribe("w-1", late.append)
    assert late == [received[-1]]


@pytest.mark.asyncio
async def test_subscribe_all_lists_every_worker(tmp_path: Path) -> None:
    channel = LocalLocationChannel(_storage(tmp_path))
    snapshots: list[list[str]] = []

    channel.subscribe_all(lambda records: snapshots.append([r.worker_id for r in records]))
    await channel.publish("w-2", 16.0, 45.0, is_online=True)
    await channel.publish("w-1", 15.0, 44.0, is_online=True)

    assert snapshots == [[], ["w-2"], ["w-1", "w-2"]]


@pytest.mark.asyncio
async def test_storage_watcher_starts_and_stops(tmp_path: Path) -> None:
    storage = LocalStorage(tmp_path, poll_interval=0.01)
    await storage.start()
    await storage.close()
    await storage.close()
