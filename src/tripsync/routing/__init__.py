"""Route resolution with a deterministic offline fallback."""

from tripsync.routing.fallback import fallback_route, haversine_km, interpolate
from tripsync.routing.resolver import RouteResolver
from tripsync.routing.session import RouteNotice, RouteSession, RouteToggle

__all__ = [
    "RouteNotice",
    "RouteResolver",
    "RouteSession",
    "RouteToggle",
    "fallback_route",
    "haversine_km",
    "interpolate",
]
