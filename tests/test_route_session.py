from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from tripsync.models._base import LatLng
from tripsync.models.route import RouteInfo, RoutePreference
from tripsync.routing.session import RouteNotice, RouteSession

A = (15.0, 44.0)
B = (15.1, 44.1)
C = (15.2, 44.2)


@dataclass
class FakeResolver:
    distances: dict[RoutePreference, float] = field(
        default_factory=lambda: {RoutePreference.FASTEST: 12.0, RoutePreference.SHORTEST: 10.0}
    )
    calls: list[tuple[LatLng, LatLng, RoutePreference]] = field(default_factory=list)
    gates: dict[LatLng, asyncio.Event] = field(default_factory=dict)

    async def fetch_route(self, start: LatLng, end: LatLng, preference: RoutePreference) -> RouteInfo:
        self.calls.append((start, end, preference))
        gate = self.gates.get(end)
        if gate is not None:
            await gate.wait()
        return RouteInfo(distance=self.distances[preference], duration=20.0, route=[start, end])


@pytest.mark.asyncio
async def test_load_fetches_fastest_and_resets_preference() -> None:
    resolver = FakeResolver()
    session = RouteSession(resolver)

    route = await session.load(A, B)

    assert route is not None
    assert route.distance == 12.0
    assert session.preference == RoutePreference.FASTEST
    assert session.active_route == route
    assert resolver.calls == [(A, B, RoutePreference.FASTEST)]


@pytest.mark.asyncio
async def test_toggle_fetches_once_then_reuses_cache() -> None:
    resolver = FakeResolver()
    session = RouteSession(resolver)
    await session.load(A, B)

    to_shortest = await session.toggle_preference()
    to_fastest = await session.toggle_preference()
    again_shortest = await session.toggle_preference()

    assert to_shortest is not None and to_fastest is not None and again_shortest is not None
    assert to_shortest.notice == RouteNotice.SHOWING_SHORTEST
    assert to_shortest.route.distance == 10.0
    assert to_fastest.notice == RouteNotice.SHOWING_FASTEST
    assert again_shortest.preference == RoutePreference.SHORTEST
    assert len(resolver.calls) == 2


@pytest.mark.asyncio
async def test_toggle_reports_identical_routes_within_tolerance() -> None:
    resolver = FakeResolver(distances={RoutePreference.FASTEST: 10.05, RoutePreference.SHORTEST: 10.0})
    session = RouteSession(resolver, tolerance_km=0.1)
    await session.load(A, B)

    toggle = await session.toggle_preference()

    assert toggle is not None
    assert toggle.notice == RouteNotice.IDENTICAL
    assert session.preference == RoutePreference.SHORTEST


@pytest.mark.asyncio
async def test_difference_exactly_at_tolerance_is_identical() -> None:
    resolver = FakeResolver(distances={RoutePreference.FASTEST: 10.1, RoutePreference.SHORTEST: 10.0})
    session = RouteSession(resolver, tolerance_km=0.1)
    await session.load(A, B)

    toggle = await session.toggle_preference()

    assert toggle is not None
    assert toggle.notice == RouteNotice.IDENTICAL


@pytest.mark.asyncio
async def test_toggle_without_endpoints_is_none() -> None:
    session = RouteSession(FakeResolver())
    assert await session.toggle_preference() is None


@pytest.mark.asyncio
async def test_stale_fetch_is_discarded() -> None:
    resolver = FakeResolver()
    slow = asyncio.Event()
    resolver.gates[B] = slow
    session = RouteSession(resolver)

    stale_task = asyncio.create_task(session.load(A, B))
    await asyncio.sleep(0)
    fresh = await session.load(A, C)
    slow.set()
    stale = await stale_task

    assert stale is None
    assert fresh is not None
    assert session.endpoints == (A, C)
    assert session.active_route == fresh
    assert session.cached(RoutePreference.FASTEST) == fresh


@pytest.mark.asyncio
async def test_returning_to_earlier_endpoints_uses_cache() -> None:
    resolver = FakeResolver()
    session = RouteSession(resolver)
    await session.load(A, B)
    await session.toggle_preference()
    await session.load(A, C)

    route = await session.load(A, B)

    assert route is not None
    assert session.preference == RoutePreference.FASTEST
    assert len(resolver.calls) == 3
