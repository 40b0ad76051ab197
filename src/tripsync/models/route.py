"""Route and geocoding result models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tripsync._normalize import safe_float
from tripsync.models._base import LatLng


class RoutePreference(StrEnum):
    FASTEST = "fastest"
    SHORTEST = "shortest"

    @property
    def other(self) -> RoutePreference:
        return RoutePreference.SHORTEST if self is RoutePreference.FASTEST else RoutePreference.FASTEST


class RouteSource(StrEnum):
    SERVICE = "service"
    FALLBACK = "fallback"


class RouteInfo(BaseModel):
    """A resolved route.

    Parameters
    ----------
    distance : float
        Length in kilometers.
    duration : float
        Travel time in minutes.
    route : list of LatLng
        Ordered polyline from start to end.
    source : RouteSource
        Whether the routing service or the straight-line fallback produced it.
    """

    model_config = ConfigDict(frozen=True)

    distance: float
    duration: float
    route: list[LatLng] = Field(default_factory=list)
    source: RouteSource = RouteSource.SERVICE

    @property
    def is_fallback(self) -> bool:
        return self.source == RouteSource.FALLBACK


class GeocodeCandidate(BaseModel):
    """A location search hit."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    display_name: str
    lat: float
    lon: float
    distance: float | None = None

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> Any:
        parsed = safe_float(value)
        return parsed if parsed is not None else value

    @field_validator("distance", mode="before")
    @classmethod
    def _coerce_distance(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def point(self) -> LatLng:
        return (self.lat, self.lon)
