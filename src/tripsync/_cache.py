"""Internal caches for route editing sessions."""

from __future__ import annotations

from dataclasses import dataclass, field

from tripsync.models._base import LatLng
from tripsync.models.route import RouteInfo, RoutePreference

RouteKey = tuple[LatLng, LatLng]


@dataclass
class RouteCacheEntry:
    """Resolved routes for one ``(start, end)`` pair."""

    routes: dict[RoutePreference, RouteInfo] = field(default_factory=dict)


class RouteCache:
    """Fastest and shortest routes cached independently per endpoint pair."""

    def __init__(self) -> None:
        self._entries: dict[RouteKey, RouteCacheEntry] = {}

    def get(self, start: LatLng, end: LatLng, preference: RoutePreference) -> RouteInfo | None:
        entry = self._entries.get((start, end))
        if entry is None:
            return None
        return entry.routes.get(preference)

    def put(self, start: LatLng, end: LatLng, preference: RoutePreference, route: RouteInfo) -> None:
        entry = self._entries.get((start, end))
        if entry is None:
            entry = RouteCacheEntry()
            self._entries[(start, end)] = entry
        entry.routes[preference] = route

    def discard(self, start: LatLng, end: LatLng) -> None:
        self._entries.pop((start, end), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RequestSequencer:
    """Monotonically increasing request numbers, one counter per field.

    A result is applied only if its number is still the latest issued
    for its field; anything older comes from a superseded request.
    """

    def __init__(self) -> None:
        self._latest: dict[str, int] = {}

    def next(self, name: str) -> int:
        seq = self._latest.get(name, 0) + 1
        self._latest[name] = seq
        return seq

    def is_current(self, name: str, seq: int) -> bool:
        return self._latest.get(name, 0) == seq
