"""Worker location models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from tripsync._normalize import safe_bool, safe_float, safe_int, safe_str
from tripsync.models._base import LatLng


class WorkerStatus(StrEnum):
    """Broadcast worker status when no booking status applies."""

    IDLE = "idle"
    OFFLINE = "offline"


class Position(BaseModel):
    """A single position fix from the device."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: int | None = None

    @property
    def point(self) -> LatLng:
        return (self.latitude, self.longitude)


class LocationPatch(BaseModel):
    """A partial update of a worker location record.

    ``None`` means "keep the stored value".
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float | None = None
    longitude: float | None = None
    is_online: bool | None = None
    status: str | None = None


class WorkerLocationRecord(BaseModel):
    """The single current-position record of one worker.

    Parameters
    ----------
    worker_id : str
        Owner of the record.
    latitude, longitude : float or None
        Last published position.
    is_online : bool
        Whether the worker is accepting work.
    status : str
        ``idle``, ``offline`` or the status of the worker's active booking.
    timestamp : int
        Epoch milliseconds of the last publish.
    """

    model_config = ConfigDict(frozen=True)

    worker_id: str
    latitude: float | None = None
    longitude: float | None = None
    is_online: bool = False
    status: str = WorkerStatus.OFFLINE.value
    timestamp: int = 0

    @property
    def point(self) -> LatLng | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def to_document(self) -> dict[str, Any]:
        """Wire shape shared by both storage strategies."""
        doc: dict[str, Any] = {
            "isOnline": self.is_online,
            "status": self.status,
            "lastUpdated": self.timestamp,
        }
        if self.latitude is not None and self.longitude is not None:
            doc["location"] = {"lat": self.latitude, "lng": self.longitude}
        return doc

    @classmethod
    def from_document(cls, worker_id: str, doc: Any) -> WorkerLocationRecord | None:
        """Parse a stored document; ``None`` when it is not an object."""
        if not isinstance(doc, dict):
            return None
        location = doc.get("location")
        lat = lng = None
        if isinstance(location, dict):
            lat = safe_float(location.get("lat"))
            lng = safe_float(location.get("lng"))
        return cls(
            worker_id=worker_id,
            latitude=lat,
            longitude=lng,
            is_online=safe_bool(doc.get("isOnline")),
            status=safe_str(doc.get("status")) or WorkerStatus.OFFLINE.value,
            timestamp=safe_int(doc.get("lastUpdated")) or 0,
        )

