from __future__ import annotations

from datetime import UTC, datetime

from tripsync._constants import fare_for_distance
from tripsync.models.booking import Booking, BookingStatus, sort_bookings
from tripsync.models.location import WorkerLocationRecord
from tripsync.models.route import GeocodeCandidate, RouteInfo, RoutePreference, RouteSource


def test_booking_accepts_camel_case_document_with_string_distance() -> None:
    booking = Booking.model_validate(
        {
            "id": "b-1",
            "service": "furnitureMoving",
            "cargoType": "boxes",
            "distance": "10",
            "duration": "25.5",
            "pickup": [15.36, 44.19],
            "drop": [15.35, 44.2],
            "time": "2026-01-01T10:00:00Z",
            "status": "completed",
            "workerId": "w-1",
        }
    )

    assert booking.cargo_type == "boxes"
    assert booking.distance == 10.0
    assert booking.duration == 25.5
    assert booking.pickup == (15.36, 44.19)
    assert booking.worker_id == "w-1"
    assert booking.status == BookingStatus.COMPLETED
    assert booking.created_at == datetime(2026, 1, 1, 10, tzinfo=UTC)


def test_booking_unparseable_distance_becomes_none_and_fare_uses_base() -> None:
    booking = Booking.model_validate({"distance": "n/a"})

    assert booking.distance is None
    assert booking.fare == 2.0


def test_fare_formula() -> None:
    assert fare_for_distance(10) == 7.0
    assert fare_for_distance(5) == 4.5
    assert fare_for_distance(None) == 2.0
    assert fare_for_distance(3.333) == 3.67


def test_booking_document_uses_wire_keys_and_omits_unset_values() -> None:
    booking = Booking(
        id="b-1",
        service="delivery",
        cargo_type="boxes",
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )

    doc = booking.to_document()

    assert doc["cargoType"] == "boxes"
    assert doc["status"] == "pending"
    assert "time" in doc
    assert "workerId" not in doc
    assert "rating" not in doc
    assert Booking.model_validate(doc) == booking


def test_naive_creation_time_is_treated_as_utc() -> None:
    booking = Booking.model_validate({"time": "2026-01-01T10:00:00"})
    assert booking.created_at.tzinfo is UTC


def test_with_route_rounds_distance_and_duration() -> None:
    info = RouteInfo(distance=12.345, duration=17.6, route=[(1.0, 2.0), (3.0, 4.0)])

    booking = Booking().with_route(info)

    assert booking.distance == 12.3
    assert booking.duration == 18.0
    assert booking.route == [(1.0, 2.0), (3.0, 4.0)]


def test_sort_bookings_newest_first_with_id_tiebreak() -> None:
    t1 = datetime(2026, 1, 1, tzinfo=UTC)
    t2 = datetime(2026, 1, 2, tzinfo=UTC)
    older = Booking(id="a", created_at=t1)
    newer = Booking(id="b", created_at=t2)
    same_time = Booking(id="c", created_at=t2)

    ordered = sort_bookings([older, newer, same_time])

    assert [b.id for b in ordered] == ["c", "b", "a"]


def test_status_flags() -> None:
    assert BookingStatus.COMPLETED.is_terminal
    assert BookingStatus.CANCELLED.is_terminal
    assert not BookingStatus.PENDING.is_terminal
    assert BookingStatus.ARRIVED.is_active
    assert not BookingStatus.PENDING.is_active


def test_worker_location_document_shape() -> None:
    record = WorkerLocationRecord(
        worker_id="w-1",
        latitude=15.3,
        longitude=44.2,
        is_online=True,
        status="idle",
        timestamp=1_700_000_000_000,
    )

    doc = record.to_document()

    assert doc == {
        "isOnline": True,
        "status": "idle",
        "lastUpdated": 1_700_000_000_000,
        "location": {"lat": 15.3, "lng": 44.2},
    }
    assert WorkerLocationRecord.from_document("w-1", doc) == record


def test_worker_location_from_document_rejects_non_objects() -> None:
    assert WorkerLocationRecord.from_document("w-1", None) is None
    assert WorkerLocationRecord.from_document("w-1", ["x"]) is None


def test_worker_location_without_coordinates_has_no_point() -> None:
    record = WorkerLocationRecord.from_document("w-1", {"isOnline": "true", "status": "offline"})

    assert record is not None
    assert record.is_online is True
    assert record.point is None
    assert "location" not in record.to_document()


def test_geocode_candidate_coerces_string_coordinates() -> None:
    candidate = GeocodeCandidate.model_validate(
        {"display_name": "Sana'a, Yemen", "lat": "15.3694", "lon": "44.1910", "place_id": 1}
    )

    assert candidate.point == (15.3694, 44.191)


def test_route_preference_other_and_fallback_flag() -> None:
    assert RoutePreference.FASTEST.other == RoutePreference.SHORTEST
    assert RoutePreference.SHORTEST.other == RoutePreference.FASTEST
    assert RouteInfo(distance=1, duration=1, source=RouteSource.FALLBACK).is_fallback
