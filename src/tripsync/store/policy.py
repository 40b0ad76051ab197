"""Deterministic write policy shared by both storage strategies.

Contains no I/O: id assignment and the merge-write rule for worker
location records.
"""

from __future__ import annotations

import secrets
from datetime import datetime

from tripsync.models.location import LocationPatch, WorkerLocationRecord


def new_booking_id(created_at: datetime) -> str:
    """Return an opaque id that sorts in creation order.

    Zero-padded epoch milliseconds followed by a random suffix, so two
    bookings created in the same millisecond still get distinct ids.
    """
    millis = int(created_at.timestamp() * 1000)
    return f"{millis:013d}-{secrets.token_hex(4)}"


def merge_location(
    existing: WorkerLocationRecord | None,
    worker_id: str,
    patch: LocationPatch,
    *,
    timestamp: int,
) -> WorkerLocationRecord:
    """Apply *patch* on top of *existing*; unset patch fields keep stored values.

    The timestamp always advances to the time of this write.
    """
    base = existing if existing is not None else WorkerLocationRecord(worker_id=worker_id)
    update = patch.model_dump(exclude_none=True)
    update["worker_id"] = worker_id
    update["timestamp"] = timestamp
    return base.model_copy(update=update)
