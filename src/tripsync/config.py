"""Client configuration for tripsync."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any, Literal

from tripsync._constants import DEFAULT_GEOCODING_URL, DEFAULT_ROUTING_URL, DEFAULT_TOPIC_PREFIX
from tripsync.exceptions import TripSyncConfigError

BackendKind = Literal["auto", "mqtt", "local"]

_BACKENDS: frozenset[str] = frozenset({"auto", "mqtt", "local"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FallbackRouteProfile:
    """Constants of the synthetic straight-line route.

    The fallback is used whenever the routing service cannot answer,
    so these values define every ETA shown while offline.
    """

    point_count: int = 40
    assumed_speed_kmh: float = 40.0
    earth_radius_km: float = 6371.0


@dataclasses.dataclass(frozen=True)
class TripSyncConfig:
    """Library configuration.

    Parameters
    ----------
    backend : str
        ``"mqtt"`` for the centralized real-time store, ``"local"`` for
        the single-device fallback, ``"auto"`` to pick ``mqtt`` when
        ``mqtt_host`` is set.  Resolved once, see :meth:`resolved_backend`.
    mqtt_host : str or None
        Broker host name for the centralized store.
    mqtt_port : int
        Broker port.
    mqtt_username : str or None
        Broker user name.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Connect with TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topic_prefix : str
        Root topic under which bookings and worker documents live.
    mqtt_client_id : str or None
        Fixed client id; a random one is generated when ``None``.
    local_storage_dir : Path
        Directory shared by every process using the local fallback.
    local_poll_interval : float
        Seconds between checks for changes written by other processes.
    routing_base_url : str
        OSRM-compatible routing service.
    geocoding_base_url : str
        Nominatim-compatible geocoding service.
    geocoding_country_codes : str or None
        Region filter for location search (comma separated ISO codes).
    search_limit : int
        Maximum number of search candidates.
    language : str
        Default language for geocoding results.
    identical_route_tolerance_km : float
        Fastest/shortest routes closer than this are reported as identical.
    position_timeout : float
        Seconds to wait for a one-shot position fix.
    fallback : FallbackRouteProfile
        Constants of the synthetic fallback route.
    """

    backend: BackendKind = "auto"
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60
    mqtt_topic_prefix: str = DEFAULT_TOPIC_PREFIX
    mqtt_client_id: str | None = None
    local_storage_dir: Path = Path(".tripsync")
    local_poll_interval: float = 1.0
    routing_base_url: str = DEFAULT_ROUTING_URL
    geocoding_base_url: str = DEFAULT_GEOCODING_URL
    geocoding_country_codes: str | None = "ye"
    search_limit: int = 5
    language: str = "ar"
    identical_route_tolerance_km: float = 0.1
    position_timeout: float = 10.0
    fallback: FallbackRouteProfile = dataclasses.field(default_factory=FallbackRouteProfile)

    def __post_init__(self) -> None:
        if not isinstance(self.local_storage_dir, Path):
            object.__setattr__(self, "local_storage_dir", Path(self.local_storage_dir))
        if self.backend not in _BACKENDS:
            raise TripSyncConfigError(f"Unknown backend {self.backend!r}; expected one of {sorted(_BACKENDS)}")
        if self.backend == "mqtt" and not self.mqtt_host:
            raise TripSyncConfigError("backend 'mqtt' requires mqtt_host")
        if self.fallback.point_count < 2:
            raise TripSyncConfigError("fallback.point_count must be at least 2")
        if self.fallback.assumed_speed_kmh <= 0:
            raise TripSyncConfigError("fallback.assumed_speed_kmh must be positive")

    def resolved_backend(self) -> Literal["mqtt", "local"]:
        """Return the concrete backend this configuration selects."""
        if self.backend == "auto":
            return "mqtt" if self.mqtt_host else "local"
        return self.backend

    @classmethod
    def from_env(cls, **overrides: Any) -> TripSyncConfig:
        """Create configuration from ``TRIPSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        fallback_kwargs: dict[str, Any] = {}
        speed_env = env.get("TRIPSYNC_FALLBACK_SPEED_KMH")
        if speed_env is not None:
            fallback_kwargs["assumed_speed_kmh"] = float(speed_env)
        points_env = env.get("TRIPSYNC_FALLBACK_POINTS")
        if points_env is not None:
            fallback_kwargs["point_count"] = int(points_env)

        fallback_overrides = overrides.pop("fallback", None)
        if isinstance(fallback_overrides, dict):
            fallback_kwargs.update(fallback_overrides)
        elif isinstance(fallback_overrides, FallbackRouteProfile):
            fallback_kwargs = dataclasses.asdict(fallback_overrides)

        fallback = FallbackRouteProfile(**fallback_kwargs) if fallback_kwargs else FallbackRouteProfile()

        _ENV_CONFIG_MAP = {
            "TRIPSYNC_BACKEND": "backend",
            "TRIPSYNC_MQTT_HOST": "mqtt_host",
            "TRIPSYNC_MQTT_USERNAME": "mqtt_username",
            "TRIPSYNC_MQTT_PASSWORD": "mqtt_password",
            "TRIPSYNC_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
            "TRIPSYNC_MQTT_CLIENT_ID": "mqtt_client_id",
            "TRIPSYNC_ROUTING_URL": "routing_base_url",
            "TRIPSYNC_GEOCODING_URL": "geocoding_base_url",
            "TRIPSYNC_COUNTRY_CODES": "geocoding_country_codes",
            "TRIPSYNC_LANGUAGE": "language",
        }
        config_kwargs: dict[str, Any] = {"fallback": fallback}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        port_env = env.get("TRIPSYNC_MQTT_PORT")
        if port_env is not None and "mqtt_port" not in overrides:
            config_kwargs["mqtt_port"] = int(port_env)

        keepalive_env = env.get("TRIPSYNC_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = int(keepalive_env)

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("TRIPSYNC_MQTT_TLS"), False)

        storage_env = env.get("TRIPSYNC_STORAGE_DIR")
        if storage_env is not None and "local_storage_dir" not in overrides:
            config_kwargs["local_storage_dir"] = Path(storage_env)

        poll_env = env.get("TRIPSYNC_POLL_INTERVAL")
        if poll_env is not None and "local_poll_interval" not in overrides:
            config_kwargs["local_poll_interval"] = float(poll_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
