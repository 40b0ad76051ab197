"""Route state of one pickup/drop editing session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from tripsync._cache import RequestSequencer, RouteCache
from tripsync.models._base import LatLng
from tripsync.models.route import RouteInfo, RoutePreference

_logger = logging.getLogger(__name__)

_ROUTE_FIELD = "route"


class RouteFetcher(Protocol):
    async def fetch_route(self, start: LatLng, end: LatLng, preference: RoutePreference) -> RouteInfo: ...


class RouteNotice(StrEnum):
    """Informational signal shown after a preference toggle."""

    IDENTICAL = "routes_identical"
    SHOWING_FASTEST = "showing_fastest"
    SHOWING_SHORTEST = "showing_shortest"


@dataclass(frozen=True)
class RouteToggle:
    preference: RoutePreference
    route: RouteInfo
    notice: RouteNotice


def routes_identical(first: RouteInfo, second: RouteInfo, tolerance_km: float) -> bool:
    return abs(first.distance - second.distance) <= tolerance_km + 1e-9


class RouteSession:
    """Fastest/shortest route state for the current pickup and drop.

    Results of fetches superseded by a newer :meth:`load` or
    :meth:`toggle_preference` are discarded, so a slow response can never
    overwrite a newer one.
    """

    def __init__(
        self,
        resolver: RouteFetcher,
        *,
        tolerance_km: float = 0.1,
        cache: RouteCache | None = None,
    ) -> None:
        self._resolver = resolver
        self._tolerance_km = tolerance_km
        self._cache = cache if cache is not None else RouteCache()
        self._sequencer = RequestSequencer()
        self._endpoints: tuple[LatLng, LatLng] | None = None
        self._preference = RoutePreference.FASTEST

    @property
    def preference(self) -> RoutePreference:
        return self._preference

    @property
    def endpoints(self) -> tuple[LatLng, LatLng] | None:
        return self._endpoints

    @property
    def active_route(self) -> RouteInfo | None:
        if self._endpoints is None:
            return None
        start, end = self._endpoints
        return self._cache.get(start, end, self._preference)

    def cached(self, preference: RoutePreference) -> RouteInfo | None:
        if self._endpoints is None:
            return None
        start, end = self._endpoints
        return self._cache.get(start, end, preference)

    def clear(self) -> None:
        """Forget the endpoints; in-flight fetches become stale."""
        self._sequencer.next(_ROUTE_FIELD)
        self._endpoints = None
        self._preference = RoutePreference.FASTEST

    async def _resolve(self, start: LatLng, end: LatLng, preference: RoutePreference) -> RouteInfo | None:
        seq = self._sequencer.next(_ROUTE_FIELD)
        route = await self._resolver.fetch_route(start, end, preference)
        if not self._sequencer.is_current(_ROUTE_FIELD, seq):
            _logger.debug("Discarding stale %s route seq=%d", preference.value, seq)
            return None
        self._cache.put(start, end, preference, route)
        return route

    async def load(self, start: LatLng, end: LatLng) -> RouteInfo | None:
        """Show the fastest route for new endpoints.

        Returns ``None`` when a newer request superseded this one.
        """
        self._endpoints = (start, end)
        self._preference = RoutePreference.FASTEST
        cached = self._cache.get(start, end, RoutePreference.FASTEST)
        if cached is not None:
            self._sequencer.next(_ROUTE_FIELD)
            return cached
        return await self._resolve(start, end, RoutePreference.FASTEST)

    async def toggle_preference(self) -> RouteToggle | None:
        """Switch between fastest and shortest.

        Returns ``None`` when no endpoints are loaded or the fetch was
        superseded.
        """
        if self._endpoints is None:
            return None
        start, end = self._endpoints
        current = self._cache.get(start, end, self._preference)
        target_preference = self._preference.other

        target = self._cache.get(start, end, target_preference)
        if target is None:
            target = await self._resolve(start, end, target_preference)
            if target is None:
                return None
        self._preference = target_preference

        if current is not None and routes_identical(current, target, self._tolerance_km):
            notice = RouteNotice.IDENTICAL
        elif target_preference == RoutePreference.SHORTEST:
            notice = RouteNotice.SHOWING_SHORTEST
        else:
            notice = RouteNotice.SHOWING_FASTEST
        return RouteToggle(preference=target_preference, route=target, notice=notice)
