"""Data models for tripsync."""

from tripsync.models._base import LatLng, TripSyncBaseModel
from tripsync.models.booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    sort_bookings,
)
from tripsync.models.location import (
    LocationPatch,
    Position,
    WorkerLocationRecord,
    WorkerStatus,
)
from tripsync.models.outcome import WriteOutcome, WriteResult
from tripsync.models.route import GeocodeCandidate, RouteInfo, RoutePreference, RouteSource
from tripsync.models.stats import DashboardStats

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "DashboardStats",
    "GeocodeCandidate",
    "LatLng",
    "LocationPatch",
    "Position",
    "RouteInfo",
    "RoutePreference",
    "RouteSource",
    "TERMINAL_STATUSES",
    "TripSyncBaseModel",
    "WorkerLocationRecord",
    "WorkerStatus",
    "WriteOutcome",
    "WriteResult",
    "sort_bookings",
]
