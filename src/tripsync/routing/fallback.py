"""Straight-line route used when the routing service cannot answer."""

from __future__ import annotations

import math

from tripsync.config import FallbackRouteProfile
from tripsync.models._base import LatLng
from tripsync.models.route import RouteInfo, RouteSource


def haversine_km(start: LatLng, end: LatLng, *, radius_km: float = 6371.0) -> float:
    """Great-circle distance between two points."""
    lat1, lng1 = start
    lat2, lng2 = end
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    return radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def interpolate(start: LatLng, end: LatLng, count: int) -> list[LatLng]:
    """*count* evenly spaced points from *start* to *end*, both included."""
    if count < 2:
        raise ValueError("count must be at least 2")
    lat_step = (end[0] - start[0]) / (count - 1)
    lng_step = (end[1] - start[1]) / (count - 1)
    return [(start[0] + lat_step * i, start[1] + lng_step * i) for i in range(count)]


def fallback_route(start: LatLng, end: LatLng, profile: FallbackRouteProfile | None = None) -> RouteInfo:
    profile = profile or FallbackRouteProfile()
    distance = haversine_km(start, end, radius_km=profile.earth_radius_km)
    return RouteInfo(
        distance=distance,
        duration=distance / profile.assumed_speed_kmh * 60,
        route=interpolate(start, end, profile.point_count),
        source=RouteSource.FALLBACK,
    )
