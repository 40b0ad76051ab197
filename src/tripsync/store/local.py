"""Single-device fallback strategy.

Documents are JSON files in one directory shared by every process on the
device.  Writes from this process notify local listeners immediately;
writes from other processes are picked up by a background watcher that
compares file signatures every ``poll_interval`` seconds, and trigger a
re-read.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tripsync._constants import BOOKINGS_KEY, WORKER_LOCATION_KEY
from tripsync.exceptions import BackendUnavailableError, BookingNotFoundError
from tripsync.models.booking import Booking
from tripsync.models.location import WorkerLocationRecord
from tripsync.store.base import LocationChannel, SubscriberSet, TripStore, Unsubscribe, _now_ms

_logger = logging.getLogger(__name__)

_Signature = tuple[int, int] | None


class LocalStorage:
    """Directory of JSON documents, one file per fixed key."""

    def __init__(self, directory: Path, *, poll_interval: float = 1.0) -> None:
        self._directory = Path(directory)
        self._poll_interval = poll_interval
        self._listeners: dict[str, SubscriberSet[str]] = {}
        self._signatures: dict[str, _Signature] = {}
        self._watcher: asyncio.Task[None] | None = None

    @property
    def directory(self) -> Path:
        return self._directory

    def path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def _signature(self, key: str) -> _Signature:
        try:
            stat = self.path(key).stat()
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def read(self, key: str) -> Any:
        """Return the parsed document, or ``None`` when missing or corrupt."""
        path = self.path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            _logger.debug("Reading %s failed", path, exc_info=True)
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            _logger.debug("Ignoring corrupt document %s", path, exc_info=True)
            return None

    def write(self, key: str, value: Any) -> None:
        """Atomically replace the document and notify this process's listeners.

        Raises
        ------
        BackendUnavailableError
            If the directory cannot be written.
        """
        path = self.path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(value, handle, separators=(",", ":"))
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise BackendUnavailableError(f"Writing {path} failed: {exc}", endpoint=str(path)) from exc

        self._signatures[key] = self._signature(key)
        self._fire(key)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, key: str, callback: Callable[[str], None]) -> Unsubscribe:
        """Call *callback* with the key whenever the document changes."""
        listeners = self._listeners.get(key)
        if listeners is None:
            listeners = SubscriberSet(f"storage:{key}")
            self._listeners[key] = listeners
            self._signatures.setdefault(key, self._signature(key))
        return listeners.add(callback)

    def _fire(self, key: str) -> None:
        listeners = self._listeners.get(key)
        if listeners:
            listeners.notify(key)

    def check_external(self) -> list[str]:
        """Fire listeners for documents changed by another process.

        Returns the keys that changed.
        """
        changed: list[str] = []
        for key in list(self._listeners):
            signature = self._signature(key)
            if signature != self._signatures.get(key):
                self._signatures[key] = signature
                changed.append(key)
        for key in changed:
            _logger.debug("External change detected key=%s", key)
            self._fire(key)
        return changed

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                self.check_external()
            except Exception:
                _logger.debug("Local storage watcher iteration failed", exc_info=True)

    async def start(self) -> None:
        if self._watcher is not None:
            return
        for key in self._listeners:
            self._signatures[key] = self._signature(key)
        if self._poll_interval > 0:
            self._watcher = asyncio.get_running_loop().create_task(self._watch())

    async def close(self) -> None:
        watcher = self._watcher
        self._watcher = None
        if watcher is None:
            return
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


class LocalTripStore(TripStore):
    """Bookings as one JSON list under the ``bookingsList`` key."""

    def __init__(self, storage: LocalStorage) -> None:
        super().__init__()
        self._storage = storage
        self._unlisten = storage.add_listener(BOOKINGS_KEY, self._on_change)

    def _on_change(self, _key: str) -> None:
        self._notify()

    def _snapshot(self) -> list[Booking]:
        raw = self._storage.read(BOOKINGS_KEY)
        if not isinstance(raw, list):
            return []
        bookings: list[Booking] = []
        for item in raw:
            try:
                bookings.append(Booking.model_validate(item))
            except ValidationError:
                _logger.debug("Skipping unreadable booking document", exc_info=True)
        return bookings

    def _documents(self) -> list[Any]:
        raw = self._storage.read(BOOKINGS_KEY)
        return raw if isinstance(raw, list) else []

    async def _insert(self, booking: Booking) -> None:
        self._storage.write(BOOKINGS_KEY, [booking.to_document(), *self._documents()])

    async def _replace(self, booking: Booking) -> None:
        documents = self._documents()
        for index, item in enumerate(documents):
            if isinstance(item, dict) and item.get("id") == booking.id:
                documents[index] = booking.to_document()
                break
        else:
            raise BookingNotFoundError(booking.id)
        self._storage.write(BOOKINGS_KEY, documents)

    async def close(self) -> None:
        self._unlisten()
        await super().close()


class LocalLocationChannel(LocationChannel):
    """Worker records as one JSON object keyed by worker id under ``driver_location``."""

    def __init__(self, storage: LocalStorage, *, clock: Callable[[], int] = _now_ms) -> None:
        super().__init__(clock=clock)
        self._storage = storage
        self._last_documents = self._documents()
        self._unlisten = storage.add_listener(WORKER_LOCATION_KEY, self._on_change)

    def _documents(self) -> dict[str, Any]:
        raw = self._storage.read(WORKER_LOCATION_KEY)
        return raw if isinstance(raw, dict) else {}

    def _on_change(self, _key: str) -> None:
        # The shared document does not say which worker changed; diff against the last one seen.
        documents = self._documents()
        previous = self._last_documents
        self._last_documents = documents
        if documents == previous:
            return
        for worker_id in sorted(set(documents) | set(previous)):
            if documents.get(worker_id) == previous.get(worker_id):
                continue
            subscribers = self._worker_subscribers.get(worker_id)
            record = WorkerLocationRecord.from_document(worker_id, documents.get(worker_id))
            if subscribers and record is not None:
                subscribers.notify(record)
        if self._all_subscribers:
            self._all_subscribers.notify(self._all())

    def _current(self, worker_id: str) -> WorkerLocationRecord | None:
        return WorkerLocationRecord.from_document(worker_id, self._documents().get(worker_id))

    def _all(self) -> list[WorkerLocationRecord]:
        records: list[WorkerLocationRecord] = []
        for worker_id, doc in sorted(self._documents().items()):
            record = WorkerLocationRecord.from_document(worker_id, doc)
            if record is not None:
                records.append(record)
        return records

    async def _store(self, record: WorkerLocationRecord) -> None:
        documents = self._documents()
        documents[record.worker_id] = record.to_document()
        self._storage.write(WORKER_LOCATION_KEY, documents)

    async def close(self) -> None:
        self._unlisten()
        await super().close()
