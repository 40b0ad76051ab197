"""Nominatim search and reverse-geocoding endpoints.

Endpoints:
  - /search
  - /reverse
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from tripsync._transport import Transport
from tripsync.exceptions import MalformedResponseError
from tripsync.models._base import LatLng
from tripsync.models.route import GeocodeCandidate

_logger = logging.getLogger(__name__)


def _endpoint(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path}"


async def search(
    transport: Transport,
    base_url: str,
    query: str,
    *,
    lang: str,
    limit: int,
    country_codes: str | None,
) -> list[GeocodeCandidate]:
    """Free-text place search.  Entries that fail to parse are dropped."""
    params: dict[str, Any] = {
        "q": query,
        "format": "json",
        "addressdetails": 1,
        "limit": limit,
        "countrycodes": country_codes or None,
        "accept-language": lang,
    }
    data = await transport.get_json(_endpoint(base_url, "search"), params)
    if not isinstance(data, list):
        raise MalformedResponseError("Search response is not a list")

    candidates: list[GeocodeCandidate] = []
    for item in data:
        try:
            candidates.append(GeocodeCandidate.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping unparseable search hit %r", item, exc_info=True)
    return candidates[:limit]


async def reverse(transport: Transport, base_url: str, point: LatLng, *, lang: str) -> str | None:
    """Human readable address of *point*, or ``None`` when the service has none."""
    params: dict[str, Any] = {
        "lat": point[0],
        "lon": point[1],
        "format": "json",
        "accept-language": lang,
    }
    data = await transport.get_json(_endpoint(base_url, "reverse"), params)
    if not isinstance(data, dict):
        raise MalformedResponseError("Reverse geocoding response is not an object")
    name = data.get("display_name")
    return name if isinstance(name, str) and name else None
