"""Composition root wiring stores, routing and presence together."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from tripsync.config import TripSyncConfig
from tripsync.dashboard import DashboardAggregator
from tripsync.lifecycle import TripLifecycle
from tripsync.presence import NoticeCallback, PositionSource, WorkerPresence
from tripsync.routing.resolver import RouteResolver
from tripsync.routing.session import RouteSession
from tripsync.store.base import LocationChannel, TripStore
from tripsync.store.factory import Backend, create_backend

_logger = logging.getLogger(__name__)


class TripSyncApp:
    """One process's view of the system.

    Usage::

        async with TripSyncApp(TripSyncConfig.from_env()) as app:
            booking_id = await app.lifecycle.request(booking)
            app.trips.subscribe(print)
    """

    def __init__(
        self,
        config: TripSyncConfig | None = None,
        *,
        backend: Backend | None = None,
        session: aiohttp.ClientSession | None = None,
        resolver: RouteResolver | None = None,
    ) -> None:
        self._config = config or TripSyncConfig.from_env()
        self._backend = backend or create_backend(self._config)
        self._resolver = resolver or RouteResolver(self._config, session=session)
        self._owns_resolver = resolver is None
        self._lifecycle = TripLifecycle(self._backend.trips)
        self._dashboard = DashboardAggregator(self._backend.trips, self._backend.locations)
        self._presences: list[WorkerPresence] = []

    @property
    def config(self) -> TripSyncConfig:
        return self._config

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def trips(self) -> TripStore:
        return self._backend.trips

    @property
    def locations(self) -> LocationChannel:
        return self._backend.locations

    @property
    def resolver(self) -> RouteResolver:
        return self._resolver

    @property
    def lifecycle(self) -> TripLifecycle:
        return self._lifecycle

    @property
    def dashboard(self) -> DashboardAggregator:
        return self._dashboard

    async def start(self) -> None:
        await self._backend.start()
        _logger.debug("TripSyncApp started backend=%s", self._backend.kind)

    async def close(self) -> None:
        for presence in self._presences:
            await presence.close()
        self._presences.clear()
        if self._owns_resolver:
            await self._resolver.close()
        await self._backend.close()

    async def __aenter__(self) -> TripSyncApp:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def route_session(self) -> RouteSession:
        """A fresh route cache for one pickup/drop editing session."""
        return RouteSession(self._resolver, tolerance_km=self._config.identical_route_tolerance_km)

    def worker_presence(
        self,
        worker_id: str,
        positions: PositionSource,
        *,
        on_notice: NoticeCallback | None = None,
        follow_trips: bool = True,
    ) -> WorkerPresence:
        """Create the presence object of *worker_id*, closed together with the app."""
        presence = WorkerPresence(
            self._backend.locations,
            positions,
            worker_id=worker_id,
            position_timeout=self._config.position_timeout,
            on_notice=on_notice,
        )
        if follow_trips:
            presence.follow_trips(self._backend.trips)
        self._presences.append(presence)
        return presence
