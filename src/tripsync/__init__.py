"""tripsync - Async booking lifecycle, worker presence and routing over a shared store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tripsync")
except PackageNotFoundError:
    __version__ = "0+local"
from tripsync.app import TripSyncApp
from tripsync.config import FallbackRouteProfile, TripSyncConfig
from tripsync.dashboard import DashboardAggregator, compute_stats, nearby_workers
from tripsync.exceptions import (
    BackendUnavailableError,
    BookingNotFoundError,
    LocationPermissionError,
    MalformedResponseError,
    TripSyncConfigError,
    TripSyncError,
    TripSyncTransportError,
)
from tripsync.lifecycle import TRANSITIONS, Actor, TripLifecycle, can_transition
from tripsync.models import (
    Booking,
    BookingStatus,
    DashboardStats,
    GeocodeCandidate,
    Position,
    RouteInfo,
    RoutePreference,
    RouteSource,
    WorkerLocationRecord,
    WorkerStatus,
    WriteOutcome,
    WriteResult,
)
from tripsync.presence import (
    PositionSource,
    PresenceState,
    ReplayPositionSource,
    StaticPositionSource,
    WorkerPresence,
)
from tripsync.routing import RouteNotice, RouteResolver, RouteSession, RouteToggle
from tripsync.store import Backend, LocationChannel, TripStore, create_backend

__all__ = [
    "__version__",
    "Actor",
    "Backend",
    "BackendUnavailableError",
    "Booking",
    "BookingNotFoundError",
    "BookingStatus",
    "DashboardAggregator",
    "DashboardStats",
    "FallbackRouteProfile",
    "GeocodeCandidate",
    "LocationChannel",
    "LocationPermissionError",
    "MalformedResponseError",
    "Position",
    "PositionSource",
    "PresenceState",
    "ReplayPositionSource",
    "RouteInfo",
    "RouteNotice",
    "RoutePreference",
    "RouteResolver",
    "RouteSession",
    "RouteSource",
    "RouteToggle",
    "StaticPositionSource",
    "TRANSITIONS",
    "TripLifecycle",
    "TripStore",
    "TripSyncApp",
    "TripSyncConfig",
    "TripSyncConfigError",
    "TripSyncError",
    "TripSyncTransportError",
    "WorkerLocationRecord",
    "WorkerPresence",
    "WorkerStatus",
    "WriteOutcome",
    "WriteResult",
    "can_transition",
    "compute_stats",
    "create_backend",
    "nearby_workers",
]
