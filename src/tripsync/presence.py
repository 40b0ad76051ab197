"""Online/offline and position broadcasting of one worker process."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable, Sequence
from enum import StrEnum
from typing import Protocol

from tripsync.exceptions import LocationPermissionError
from tripsync.lifecycle import active_booking_for_worker
from tripsync.models._base import LatLng
from tripsync.models.booking import Booking, BookingStatus
from tripsync.models.location import Position, WorkerStatus
from tripsync.models.outcome import WriteResult
from tripsync.store.base import LocationChannel, TripStore, Unsubscribe

_logger = logging.getLogger(__name__)

NoticeCallback = Callable[[Exception], None]


class PresenceState(StrEnum):
    OFFLINE = "offline"
    IDLE = "idle"
    ON_TRIP = "on-trip"


class PositionSource(Protocol):
    """Device position capability.

    Both methods raise :class:`LocationPermissionError` when access is refused.
    """

    async def current_position(self, timeout: float) -> Position: ...

    def watch(self, *, high_accuracy: bool = True) -> AsyncIterator[Position]: ...


class StaticPositionSource:
    """A device that never moves.

    ``watch`` yields the position once, or every *interval* seconds when
    one is given.
    """

    def __init__(self, point: LatLng, *, interval: float | None = None, denied: bool = False) -> None:
        self.point = point
        self.interval = interval
        self.denied = denied

    def _position(self) -> Position:
        if self.denied:
            raise LocationPermissionError("Location access denied")
        return Position(latitude=self.point[0], longitude=self.point[1], timestamp=int(time.time() * 1000))

    async def current_position(self, timeout: float) -> Position:
        return self._position()

    async def watch(self, *, high_accuracy: bool = True) -> AsyncIterator[Position]:
        yield self._position()
        while self.interval is not None:
            await asyncio.sleep(self.interval)
            yield self._position()


class ReplayPositionSource:
    """Replays a recorded polyline, one point per *interval* seconds."""

    def __init__(self, route: Sequence[LatLng], *, interval: float = 1.0) -> None:
        if not route:
            raise ValueError("route must contain at least one point")
        self._route = list(route)
        self._interval = interval
        self._index = 0

    def _position(self) -> Position:
        lat, lng = self._route[min(self._index, len(self._route) - 1)]
        return Position(latitude=lat, longitude=lng, timestamp=int(time.time() * 1000))

    async def current_position(self, timeout: float) -> Position:
        return self._position()

    async def watch(self, *, high_accuracy: bool = True) -> AsyncIterator[Position]:
        while self._index < len(self._route):
            yield self._position()
            self._index += 1
            if self._index < len(self._route):
                await asyncio.sleep(self._interval)


class WorkerPresence:
    """Presence of one worker, broadcast through a :class:`LocationChannel`.

    While online every device fix is published with the broadcast status:
    the active booking's status, or ``idle`` without one.  A running
    simulation replaces device fixes.

    Parameters
    ----------
    channel : LocationChannel
        Where records are published.
    positions : PositionSource
        Device position capability.
    worker_id : str
        Owner of the published record.
    clock : callable
        Monotonic seconds, used to judge whether the last fix is fresh.
    position_timeout : float
        Seconds to wait for a one-shot fix.
    max_fix_age : float
        A last fix older than this is reacquired before a status broadcast.
    on_notice : callable or None
        Receives user-facing, non-fatal problems such as a refused
        location permission.
    """

    def __init__(
        self,
        channel: LocationChannel,
        positions: PositionSource,
        *,
        worker_id: str,
        clock: Callable[[], float] = time.monotonic,
        position_timeout: float = 10.0,
        max_fix_age: float = 30.0,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._channel = channel
        self._positions = positions
        self._worker_id = worker_id
        self._clock = clock
        self._position_timeout = position_timeout
        self._max_fix_age = max_fix_age
        self._on_notice = on_notice

        self._online = False
        self._active_status: BookingStatus | None = None
        self._last_fix: Position | None = None
        self._last_fix_at: float | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._simulation_task: asyncio.Task[None] | None = None
        self._unfollow: Unsubscribe | None = None
        self._pending: set[asyncio.Task[WriteResult | None]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def active_trip_status(self) -> BookingStatus | None:
        return self._active_status

    @property
    def state(self) -> PresenceState:
        if not self._online:
            return PresenceState.OFFLINE
        if self._active_status is not None:
            return PresenceState.ON_TRIP
        return PresenceState.IDLE

    @property
    def last_fix(self) -> Position | None:
        return self._last_fix

    @property
    def simulating(self) -> bool:
        return self._simulation_task is not None and not self._simulation_task.done()

    def _broadcast_status(self) -> str:
        if self._active_status is not None:
            return self._active_status.value
        return WorkerStatus.IDLE.value

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def _notice(self, exc: Exception) -> None:
        _logger.info("Presence notice for worker=%s: %s", self._worker_id, exc)
        if self._on_notice is None:
            return
        try:
            self._on_notice(exc)
        except Exception:
            _logger.debug("Notice callback failed", exc_info=True)

    def _record_fix(self, position: Position) -> None:
        self._last_fix = position
        self._last_fix_at = self._clock()

    def _fresh_fix(self) -> Position | None:
        if self._last_fix is None or self._last_fix_at is None:
            return None
        if self._clock() - self._last_fix_at > self._max_fix_age:
            return None
        return self._last_fix

    async def _acquire(self) -> Position | None:
        """One-shot fix; falls back to the last known fix on failure."""
        try:
            position = await asyncio.wait_for(
                self._positions.current_position(self._position_timeout),
                self._position_timeout,
            )
        except LocationPermissionError as exc:
            self._notice(exc)
            return self._last_fix
        except TimeoutError:
            _logger.debug("No position fix within %.1fs", self._position_timeout)
            return self._last_fix
        self._record_fix(position)
        return position

    async def _broadcast(self, point: LatLng | None) -> WriteResult:
        lat, lng = point if point is not None else (None, None)
        return await self._channel.publish(
            self._worker_id,
            lat,
            lng,
            is_online=self._online,
            status=self._broadcast_status(),
        )

    async def _watch(self) -> None:
        try:
            async for position in self._positions.watch(high_accuracy=True):
                self._record_fix(position)
                if not self._online:
                    return
                if self.simulating:
                    continue
                result = await self._broadcast(position.point)
                if not result.ok:
                    _logger.debug("Position broadcast failed: %s", result.detail)
        except LocationPermissionError as exc:
            self._notice(exc)
        except Exception:
            _logger.warning("Position watch for worker=%s stopped", self._worker_id, exc_info=True)

    def _start_watching(self) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            return
        self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    async def _stop_watching(self) -> None:
        task = self._watch_task
        self._watch_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Presence operations
    # ------------------------------------------------------------------

    async def go_online(self) -> WriteResult:
        """Start broadcasting; the first record is published immediately."""
        if self._online:
            return WriteResult.success()
        self._online = True
        position = await self._acquire()
        self._start_watching()
        return await self._broadcast(position.point if position is not None else None)

    async def go_offline(self) -> WriteResult:
        """Stop broadcasting and publish an offline record at the last known position."""
        if not self._online:
            return WriteResult.success()
        self._online = False
        await self._stop_watching()
        await self.stop_simulation()
        point = self._last_fix.point if self._last_fix is not None else None
        lat, lng = point if point is not None else (None, None)
        return await self._channel.publish(
            self._worker_id,
            lat,
            lng,
            is_online=False,
            status=WorkerStatus.OFFLINE.value,
        )

    async def set_active_trip_status(self, status: BookingStatus | str | None) -> WriteResult | None:
        """Broadcast the active booking's status (``None`` for idle).

        Uses the last fix while it is fresh, otherwise acquires a new one.
        Returns ``None`` while offline; nothing is published then.
        """
        self._active_status = BookingStatus(status) if status is not None else None
        if not self._online:
            return None
        position = self._fresh_fix() or await self._acquire()
        return await self._broadcast(position.point if position is not None else None)

    async def restore(self) -> PresenceState:
        """Resume from the published record after a restart."""
        record = await self._channel.get(self._worker_id)
        if record is None or not record.is_online:
            return self.state
        self._online = True
        try:
            status = BookingStatus(record.status)
        except ValueError:
            status = None
        self._active_status = status if status is not None and status.is_active else None
        if record.point is not None:
            lat, lng = record.point
            self._last_fix = Position(latitude=lat, longitude=lng, timestamp=record.timestamp)
        self._start_watching()
        _logger.debug("Restored worker=%s state=%s", self._worker_id, self.state.value)
        return self.state

    def follow_trips(self, store: TripStore) -> Unsubscribe:
        """Keep the broadcast status in line with the worker's active booking."""
        if self._unfollow is not None:
            self._unfollow()

        def _on_bookings(bookings: list[Booking]) -> None:
            active = active_booking_for_worker(bookings, self._worker_id)
            status = active.status if active is not None else None
            if status == self._active_status:
                return
            task = asyncio.get_running_loop().create_task(self.set_active_trip_status(status))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        unsubscribe = store.subscribe(_on_bookings)
        self._unfollow = unsubscribe
        return unsubscribe

    async def settle(self) -> None:
        """Wait for broadcasts scheduled by :meth:`follow_trips`."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    async def _simulate(self, route: list[LatLng], interval: float) -> None:
        index = 0
        while self._online:
            point = route[min(index, len(route) - 1)]
            result = await self._broadcast(point)
            if not result.ok:
                _logger.debug("Simulated broadcast failed: %s", result.detail)
            index += 1
            await asyncio.sleep(interval)

    def start_simulation(self, route: Sequence[LatLng], interval: float = 1.0) -> None:
        """Publish *route* one point per *interval* instead of device fixes.

        The last point is repeated until :meth:`stop_simulation`.

        Raises
        ------
        RuntimeError
            If the worker is offline; offline records never carry a trip status.
        """
        if not route:
            raise ValueError("route must contain at least one point")
        if not self._online:
            raise RuntimeError(f"worker {self._worker_id} must be online to simulate")
        if self._simulation_task is not None:
            self._simulation_task.cancel()
        self._simulation_task = asyncio.get_running_loop().create_task(self._simulate(list(route), interval))

    async def stop_simulation(self) -> None:
        task = self._simulation_task
        self._simulation_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def close(self) -> None:
        if self._unfollow is not None:
            self._unfollow()
            self._unfollow = None
        await self._stop_watching()
        await self.stop_simulation()
        await self.settle()
