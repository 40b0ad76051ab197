"""Booking model and status enum."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from tripsync._constants import fare_for_distance
from tripsync._normalize import safe_float, safe_int, safe_str
from tripsync.models._base import LatLng, TripSyncBaseModel
from tripsync.models.route import RouteInfo


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BookingStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """Whether a worker is currently committed to the booking."""
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})
ACTIVE_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.ACCEPTED, BookingStatus.ARRIVED, BookingStatus.IN_PROGRESS}
)


class Booking(TripSyncBaseModel):
    """A single transport request.

    Parameters
    ----------
    id : str
        Opaque, creation-ordered identifier assigned by the store.
    service : str
        Service descriptor (e.g. ``"furnitureMoving"``).
    cargo_type, size, weight : str
        Cargo attributes as entered by the requester.
    preference : str
        Preference tag (e.g. ``"fastDelivery"``, ``"scheduleTrip"``).
    scheduled_time : str or None
        Requested pickup time for scheduled trips.
    pickup, drop : LatLng or None
        Trip end points.
    distance : float or None
        Route distance in kilometers.  Stored documents may carry it as a
        string (``"10.0"``); unparseable values become ``None``.
    duration : float or None
        Route duration in minutes.
    route : list of LatLng
        Route polyline.
    created_at : datetime
        Creation timestamp (wire key ``time``).
    status : BookingStatus
        Lifecycle status.
    worker_id : str or None
        Worker that accepted the booking.
    rating : int or None
        Requester rating, set once the trip is completed.
    requester_id : str or None
        Requester that created the booking, when known.
    """

    id: str = ""
    service: str = ""
    cargo_type: str = ""
    size: str = ""
    weight: str = ""
    preference: str = ""
    scheduled_time: str | None = None
    pickup: LatLng | None = None
    drop: LatLng | None = None
    distance: float | None = None
    duration: float | None = None
    route: list[LatLng] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow, alias="time")
    status: BookingStatus = BookingStatus.PENDING
    worker_id: str | None = None
    rating: int | None = None
    requester_id: str | None = None

    @field_validator("service", "cargo_type", "size", "weight", "preference", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return safe_str(value) or ""

    @field_validator("distance", "duration", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("rating", mode="before")
    @classmethod
    def _coerce_rating(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("created_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def fare(self) -> float:
        """Charge for the trip: ``round(distance_km * 0.5 + 2.0, 2)``."""
        return fare_for_distance(self.distance)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    def with_route(self, info: RouteInfo) -> Booking:
        """Return a copy carrying the resolved route.

        Distance is kept to one decimal and duration to whole minutes,
        the precision shown to users when booking.
        """
        return self.model_copy(
            update={
                "distance": round(info.distance, 1),
                "duration": float(round(info.duration)),
                "route": list(info.route),
            }
        )


def sort_bookings(bookings: list[Booking]) -> list[Booking]:
    """Order bookings by creation time, newest first."""
    return sorted(bookings, key=lambda b: b.sort_key, reverse=True)
