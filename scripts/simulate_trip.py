#!/usr/bin/env python3
"""Drive one complete trip against the configured backend.

A requester books a trip, a worker goes online, accepts it and replays
the resolved route, and an observer prints live dashboard statistics.
Useful as a manual smoke test of a broker or of the local fallback.

Configuration comes from ``TRIPSYNC_*`` environment variables; the
command line overrides the most common ones.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from tripsync import (  # noqa: E402
    Booking,
    DashboardStats,
    StaticPositionSource,
    TripSyncApp,
    TripSyncConfig,
    TripSyncError,
)
from tripsync.models import LatLng, WorkerLocationRecord  # noqa: E402

_LOG = logging.getLogger("simulate_trip")

# Sana'a city centre to the old city.
_DEFAULT_PICKUP = "15.3694,44.1910"
_DEFAULT_DROP = "15.3547,44.2066"


def _parse_point(value: str) -> LatLng:
    try:
        lat_text, lng_text = value.split(",", 1)
        return (float(lat_text), float(lng_text))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {value!r}") from exc


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate one booking from request to rating.")
    parser.add_argument("--backend", choices=["auto", "mqtt", "local"], default=None, help="Store backend.")
    parser.add_argument("--storage-dir", type=Path, default=None, help="Directory for the local backend.")
    parser.add_argument("--pickup", type=_parse_point, default=_parse_point(_DEFAULT_PICKUP), help="lat,lng")
    parser.add_argument("--drop", type=_parse_point, default=_parse_point(_DEFAULT_DROP), help="lat,lng")
    parser.add_argument("--worker-id", default="worker-1", help="Worker id to simulate.")
    parser.add_argument("--interval", type=float, default=0.2, help="Seconds between simulated fixes.")
    parser.add_argument("--points", type=int, default=10, help="Route points to replay per leg.")
    parser.add_argument("--rating", type=int, default=5, help="Rating given by the requester.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _print_stats(stats: DashboardStats) -> None:
    print(
        f"[observer] trips={stats.total_trips} completed={stats.completed_trips} "
        f"workers_online={stats.active_workers} revenue={stats.total_revenue:.2f}"
    )


def _print_location(record: WorkerLocationRecord) -> None:
    print(f"[observer] worker={record.worker_id} point={record.point} online={record.is_online} status={record.status}")


async def _drive(app: TripSyncApp, presence_route: list[LatLng], args: argparse.Namespace, booking_id: str) -> None:
    presence = app.worker_presence(args.worker_id, StaticPositionSource(args.pickup))
    await presence.go_online()

    result = await app.lifecycle.accept(booking_id, args.worker_id)
    print(f"[worker] accept -> {result.outcome.value}")
    if not result.ok:
        return
    await presence.settle()

    presence.start_simulation(presence_route[: args.points], interval=args.interval)
    await asyncio.sleep(args.interval * args.points)
    for step in ("arrived", "in_progress", "completed"):
        result = await app.lifecycle.advance(booking_id, args.worker_id)
        print(f"[worker] {step} -> {result.outcome.value}")
        await presence.settle()
        await asyncio.sleep(args.interval * 2)
    await presence.stop_simulation()

    result = await app.lifecycle.rate(booking_id, args.rating)
    print(f"[requester] rate {args.rating} -> {result.outcome.value}")
    await presence.go_offline()


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.backend is not None:
        overrides["backend"] = args.backend
    if args.storage_dir is not None:
        overrides["local_storage_dir"] = args.storage_dir
    config = TripSyncConfig.from_env(**overrides)

    async with TripSyncApp(config) as app:
        print(f"[probe] backend={app.backend.kind}")
        unwatch = app.dashboard.watch(_print_stats)
        unfollow = app.locations.subscribe(args.worker_id, _print_location)
        try:
            session = app.route_session()
            route = await session.load(args.pickup, args.drop)
            if route is None:
                print("[requester] route request superseded", file=sys.stderr)
                return 1
            print(
                f"[requester] route {route.source.value}: {route.distance:.1f} km, "
                f"{route.duration:.0f} min, {len(route.route)} points"
            )
            booking = Booking(
                service="furnitureMoving",
                cargo_type="boxes",
                size="medium",
                weight="50kg",
                preference="fastDelivery",
                pickup=args.pickup,
                drop=args.drop,
            ).with_route(route)
            booking_id = await app.lifecycle.request(booking)
            print(f"[requester] booked id={booking_id} fare={booking.fare:.2f}")

            await _drive(app, list(route.route), args, booking_id)
            _print_stats(await app.dashboard.get_stats())
        finally:
            unwatch()
            unfollow()
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except TripSyncError as exc:
        print(f"[probe] failed: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(_main())
