"""Backend selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from tripsync._mqtt import MqttRuntime
from tripsync.config import TripSyncConfig
from tripsync.store.base import LocationChannel, TripStore
from tripsync.store.local import LocalLocationChannel, LocalStorage, LocalTripStore
from tripsync.store.mqtt import MqttLocationChannel, MqttTripStore

_logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0


@dataclass
class Backend:
    """The store pair of one strategy, plus the medium they share."""

    kind: str
    trips: TripStore
    locations: LocationChannel
    medium: LocalStorage | MqttRuntime
    connect_timeout: float = CONNECT_TIMEOUT
    _started: bool = field(default=False, init=False, repr=False)

    async def start(self) -> None:
        if self._started:
            return
        if isinstance(self.medium, MqttRuntime):
            self.medium.start()
            await self.medium.wait_connected(self.connect_timeout)
        else:
            await self.medium.start()
        await self.trips.start()
        await self.locations.start()
        self._started = True
        _logger.debug("Backend %s started", self.kind)

    async def close(self) -> None:
        await self.trips.close()
        await self.locations.close()
        if isinstance(self.medium, MqttRuntime):
            self.medium.stop()
        else:
            await self.medium.close()
        self._started = False

    async def __aenter__(self) -> Backend:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


def create_backend(config: TripSyncConfig) -> Backend:
    """Build the backend selected by *config*.

    The choice is made once; nothing downstream branches on it.
    """
    kind = config.resolved_backend()
    if kind == "mqtt":
        runtime = MqttRuntime(config)
        return Backend(
            kind=kind,
            trips=MqttTripStore(runtime, topic_prefix=config.mqtt_topic_prefix),
            locations=MqttLocationChannel(runtime, topic_prefix=config.mqtt_topic_prefix),
            medium=runtime,
        )

    storage = LocalStorage(config.local_storage_dir, poll_interval=config.local_poll_interval)
    return Backend(
        kind=kind,
        trips=LocalTripStore(storage),
        locations=LocalLocationChannel(storage),
        medium=storage,
    )
