from __future__ import annotations

import math
from datetime import UTC, datetime

from tripsync._normalize import safe_bool, safe_float, safe_int, safe_latlng, safe_str
from tripsync.models.location import LocationPatch, WorkerLocationRecord
from tripsync.store.policy import merge_location, new_booking_id


def test_safe_float_rejects_junk() -> None:
    assert safe_float("10") == 10.0
    assert safe_float(" 2.5 ") == 2.5
    assert safe_float("") is None
    assert safe_float("--") is None
    assert safe_float("abc") is None
    assert safe_float(True) is None
    assert safe_float(math.nan) is None
    assert safe_float("inf") is None


def test_safe_int_and_str() -> None:
    assert safe_int("4.0") == 4
    assert safe_int(None) is None
    assert safe_str(12) == "12"
    assert safe_str("") is None


def test_safe_bool_variants() -> None:
    assert safe_bool("true") is True
    assert safe_bool("0") is False
    assert safe_bool(1) is True
    assert safe_bool(None) is False
    assert safe_bool("maybe", default=True) is True


def test_safe_latlng() -> None:
    assert safe_latlng(["15.3", 44.2]) == (15.3, 44.2)
    assert safe_latlng([15.3]) is None
    assert safe_latlng("15.3,44.2") is None


def test_booking_ids_sort_in_creation_order() -> None:
    early = new_booking_id(datetime(2026, 1, 1, tzinfo=UTC))
    late = new_booking_id(datetime(2026, 1, 2, tzinfo=UTC))
    twin_a = new_booking_id(datetime(2026, 1, 3, tzinfo=UTC))
    twin_b = new_booking_id(datetime(2026, 1, 3, tzinfo=UTC))

    assert early < late < twin_a
    assert twin_a != twin_b
    assert twin_a[:13] == twin_b[:13]


def test_merge_location_keeps_unset_fields() -> None:
    existing = WorkerLocationRecord(
        worker_id="w-1", latitude=15.0, longitude=44.0, is_online=True, status="idle", timestamp=1
    )

    merged = merge_location(existing, "w-1", LocationPatch(status="accepted"), timestamp=5)

    assert merged == WorkerLocationRecord(
        worker_id="w-1", latitude=15.0, longitude=44.0, is_online=True, status="accepted", timestamp=5
    )


def test_merge_location_without_existing_record() -> None:
    merged = merge_location(None, "w-2", LocationPatch(latitude=1.0, longitude=2.0), timestamp=9)

    assert merged.point == (1.0, 2.0)
    assert merged.is_online is False
    assert merged.status == "offline"
    assert merged.timestamp == 9
