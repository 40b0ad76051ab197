"""OSRM route endpoint.

Endpoint:
  - /route/v1/driving/{lng},{lat};{lng},{lat}
"""

from __future__ import annotations

import logging
from typing import Any

from tripsync._normalize import safe_float
from tripsync._transport import Transport
from tripsync.exceptions import MalformedResponseError
from tripsync.models._base import LatLng
from tripsync.models.route import RouteInfo, RoutePreference, RouteSource

_logger = logging.getLogger(__name__)


def build_route_url(base_url: str, start: LatLng, end: LatLng) -> str:
    """OSRM takes coordinates as ``lng,lat`` pairs."""
    return f"{base_url.rstrip('/')}/route/v1/driving/{start[1]},{start[0]};{end[1]},{end[0]}"


def build_route_params(preference: RoutePreference) -> dict[str, str]:
    params = {"overview": "full", "geometries": "geojson"}
    if preference == RoutePreference.SHORTEST:
        params["alternatives"] = "true"
    return params


def _parse_geometry(geometry: Any) -> list[LatLng]:
    if not isinstance(geometry, dict):
        return []
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list):
        return []
    points: list[LatLng] = []
    for pair in coordinates:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            continue
        lng = safe_float(pair[0])
        lat = safe_float(pair[1])
        if lat is None or lng is None:
            continue
        points.append((lat, lng))
    return points


def _parse_route(raw: Any) -> RouteInfo | None:
    if not isinstance(raw, dict):
        return None
    meters = safe_float(raw.get("distance"))
    seconds = safe_float(raw.get("duration"))
    if meters is None or seconds is None:
        return None
    return RouteInfo(
        distance=meters / 1000,
        duration=seconds / 60,
        route=_parse_geometry(raw.get("geometry")),
        source=RouteSource.SERVICE,
    )


def parse_route_response(data: Any, preference: RoutePreference) -> RouteInfo:
    """Pick the route for *preference* out of an OSRM response.

    ``fastest`` takes the service's primary route; ``shortest`` takes
    the alternative with the smallest distance.

    Raises
    ------
    MalformedResponseError
        If the code is not ``Ok`` or no usable route is present.
    """
    if not isinstance(data, dict):
        raise MalformedResponseError("Route response is not an object")
    code = data.get("code")
    if code != "Ok":
        raise MalformedResponseError(f"Route service answered code={code!r} message={data.get('message', '')}")
    raw_routes = data.get("routes")
    if not isinstance(raw_routes, list):
        raise MalformedResponseError("Route response has no routes")
    routes = [route for route in (_parse_route(item) for item in raw_routes) if route is not None]
    if not routes:
        raise MalformedResponseError("No route found")

    if preference == RoutePreference.SHORTEST:
        return min(routes, key=lambda route: route.distance)
    return routes[0]


async def fetch_route(
    transport: Transport,
    base_url: str,
    start: LatLng,
    end: LatLng,
    preference: RoutePreference = RoutePreference.FASTEST,
) -> RouteInfo:
    """Query the routing service; errors propagate to the caller."""
    url = build_route_url(base_url, start, end)
    data = await transport.get_json(url, build_route_params(preference))
    route = parse_route_response(data, preference)
    _logger.debug(
        "Route resolved preference=%s distance=%.3fkm duration=%.1fmin points=%d",
        preference.value,
        route.distance,
        route.duration,
        len(route.route),
    )
    return route
