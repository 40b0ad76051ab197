"""Route and geocoding resolution against external services."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from tripsync._api import nominatim as _nominatim_api
from tripsync._api import osrm as _osrm_api
from tripsync._transport import HttpTransport, Transport
from tripsync.config import TripSyncConfig
from tripsync.exceptions import TripSyncTransportError
from tripsync.models._base import LatLng
from tripsync.models.route import GeocodeCandidate, RouteInfo, RoutePreference
from tripsync.routing.fallback import fallback_route

_logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3


class RouteResolver:
    """Resolve routes, addresses and place searches.

    None of the public methods raise on service failure: routes degrade
    to the straight-line fallback, geocoding to ``None`` or ``[]``.

    Usage::

        async with RouteResolver(config) as resolver:
            info = await resolver.fetch_route(pickup, drop)
    """

    def __init__(
        self,
        config: TripSyncConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or TripSyncConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._external_transport = transport is not None

    async def __aenter__(self) -> RouteResolver:
        self._ensure_transport()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _ensure_transport(self) -> Transport:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session)
        return self._transport

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        if not self._external_session:
            self._http_session = None
        if not self._external_transport:
            # Rebuilt on next use; the old one is bound to the closed session.
            self._transport = None

    @property
    def config(self) -> TripSyncConfig:
        return self._config

    async def fetch_route(
        self,
        start: LatLng,
        end: LatLng,
        preference: RoutePreference | str = RoutePreference.FASTEST,
    ) -> RouteInfo:
        """Resolve a route, falling back to a straight line on any failure."""
        pref = RoutePreference(preference)
        try:
            return await _osrm_api.fetch_route(
                self._ensure_transport(),
                self._config.routing_base_url,
                start,
                end,
                pref,
            )
        except TripSyncTransportError as exc:
            _logger.warning("Route fetch failed (using straight line fallback): %s", exc)
        return fallback_route(start, end, self._config.fallback)

    async def reverse_geocode(self, point: LatLng, lang: str | None = None) -> str | None:
        try:
            return await _nominatim_api.reverse(
                self._ensure_transport(),
                self._config.geocoding_base_url,
                point,
                lang=lang or self._config.language,
            )
        except TripSyncTransportError:
            _logger.debug("Reverse geocoding failed for %s", point, exc_info=True)
            return None

    async def search_location(self, text: str, lang: str | None = None) -> list[GeocodeCandidate]:
        """Search places by free text; short queries return nothing without a request."""
        query = text.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        try:
            return await _nominatim_api.search(
                self._ensure_transport(),
                self._config.geocoding_base_url,
                query,
                lang=lang or self._config.language,
                limit=self._config.search_limit,
                country_codes=self._config.geocoding_country_codes,
            )
        except TripSyncTransportError:
            _logger.debug("Location search failed for %r", query, exc_info=True)
            return []
