"""Booking state machine.

Every transition is validated against :data:`TRANSITIONS` and written
conditionally on the status it was validated against, so a booking that
moved on in the meantime is rejected instead of overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import StrEnum

from tripsync.models.booking import Booking, BookingStatus
from tripsync.models.outcome import WriteResult
from tripsync.store.base import TripStore

_logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class Actor(StrEnum):
    REQUESTER = "requester"
    WORKER = "worker"


TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[Actor]] = {
    (BookingStatus.PENDING, BookingStatus.ACCEPTED): frozenset({Actor.WORKER}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({Actor.REQUESTER, Actor.WORKER}),
    (BookingStatus.ACCEPTED, BookingStatus.ARRIVED): frozenset({Actor.WORKER}),
    (BookingStatus.ARRIVED, BookingStatus.IN_PROGRESS): frozenset({Actor.WORKER}),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED): frozenset({Actor.WORKER}),
}

# The single forward step a worker takes from each active status.
NEXT_STEP: dict[BookingStatus, BookingStatus] = {
    BookingStatus.ACCEPTED: BookingStatus.ARRIVED,
    BookingStatus.ARRIVED: BookingStatus.IN_PROGRESS,
    BookingStatus.IN_PROGRESS: BookingStatus.COMPLETED,
}


def can_transition(
    current: BookingStatus | str,
    target: BookingStatus | str,
    actor: Actor | str | None = None,
) -> bool:
    """Whether *actor* (any actor when ``None``) may move a booking from *current* to *target*."""
    actors = TRANSITIONS.get((BookingStatus(current), BookingStatus(target)))
    if actors is None:
        return False
    return actor is None or Actor(actor) in actors


class TripLifecycle:
    """Requester and worker operations on bookings."""

    def __init__(self, store: TripStore) -> None:
        self._store = store

    @property
    def store(self) -> TripStore:
        return self._store

    async def request(self, booking: Booking) -> str:
        """Create a pending booking and return its id.

        Raises ``BackendUnavailableError`` when the store cannot accept it.
        """
        return await self._store.create(booking)

    async def _transition(
        self,
        booking_id: str,
        target: BookingStatus,
        actor: Actor,
        *,
        worker_id: str | None = None,
        require_worker: str | None = None,
    ) -> WriteResult:
        current = await self._store.get(booking_id)
        if current is None:
            _logger.debug("Transition to %s for unknown booking id=%s", target.value, booking_id)
            return WriteResult.not_found(booking_id)
        if not can_transition(current.status, target, actor):
            return WriteResult.rejected(
                booking_id,
                f"{actor.value} cannot move booking from {current.status.value} to {target.value}",
            )
        if require_worker is not None and current.worker_id != require_worker:
            return WriteResult.rejected(booking_id, f"booking is assigned to {current.worker_id!r}")

        result = await self._store.update_status(
            booking_id,
            target,
            worker_id,
            expected_status=current.status,
        )
        _logger.debug(
            "Booking id=%s %s -> %s by %s outcome=%s",
            booking_id,
            current.status.value,
            target.value,
            actor.value,
            result.outcome.value,
        )
        return result

    async def accept(self, booking_id: str, worker_id: str) -> WriteResult:
        """Assign the booking to *worker_id*, only while it is still pending."""
        return await self._transition(booking_id, BookingStatus.ACCEPTED, Actor.WORKER, worker_id=worker_id)

    async def cancel(self, booking_id: str, actor: Actor | str = Actor.REQUESTER) -> WriteResult:
        return await self._transition(booking_id, BookingStatus.CANCELLED, Actor(actor))

    async def mark_arrived(self, booking_id: str, worker_id: str | None = None) -> WriteResult:
        return await self._transition(booking_id, BookingStatus.ARRIVED, Actor.WORKER, require_worker=worker_id)

    async def start_trip(self, booking_id: str, worker_id: str | None = None) -> WriteResult:
        return await self._transition(booking_id, BookingStatus.IN_PROGRESS, Actor.WORKER, require_worker=worker_id)

    async def complete(self, booking_id: str, worker_id: str | None = None) -> WriteResult:
        return await self._transition(booking_id, BookingStatus.COMPLETED, Actor.WORKER, require_worker=worker_id)

    async def advance(self, booking_id: str, worker_id: str | None = None) -> WriteResult:
        """Take the worker's next step: arrived, then in progress, then completed."""
        current = await self._store.get(booking_id)
        if current is None:
            return WriteResult.not_found(booking_id)
        target = NEXT_STEP.get(current.status)
        if target is None:
            return WriteResult.rejected(booking_id, f"no next step from {current.status.value}")
        return await self._transition(booking_id, target, Actor.WORKER, require_worker=worker_id)

    async def rate(self, booking_id: str, rating: int) -> WriteResult:
        """Rate a completed booking.

        Raises
        ------
        ValueError
            If *rating* is outside 1..5.
        """
        if isinstance(rating, bool) or not MIN_RATING <= int(rating) <= MAX_RATING:
            raise ValueError(f"rating must be between {MIN_RATING} and {MAX_RATING}, got {rating!r}")
        current = await self._store.get(booking_id)
        if current is None:
            return WriteResult.not_found(booking_id)
        if current.status != BookingStatus.COMPLETED:
            return WriteResult.rejected(booking_id, f"cannot rate a {current.status.value} booking")
        return await self._store.update_rating(booking_id, int(rating))


# ----------------------------------------------------------------------
# Client-side views over a booking snapshot
# ----------------------------------------------------------------------


def pending_bookings(bookings: Iterable[Booking]) -> list[Booking]:
    """Requests waiting for a worker, in snapshot order."""
    return [b for b in bookings if b.status == BookingStatus.PENDING]


def active_booking_for_worker(bookings: Iterable[Booking], worker_id: str) -> Booking | None:
    for booking in bookings:
        if booking.worker_id == worker_id and booking.status.is_active:
            return booking
    return None


def active_booking_for_requester(bookings: Iterable[Booking], requester_id: str | None = None) -> Booking | None:
    """The requester's trip in progress; bookings without a requester id match any requester."""
    for booking in bookings:
        if not booking.status.is_active:
            continue
        if requester_id is None or booking.requester_id in (None, requester_id):
            return booking
    return None


def completed_unrated(bookings: Iterable[Booking], requester_id: str | None = None) -> Booking | None:
    for booking in bookings:
        if booking.status != BookingStatus.COMPLETED or booking.rating is not None:
            continue
        if requester_id is None or booking.requester_id in (None, requester_id):
            return booking
    return None


def worker_history(bookings: Iterable[Booking], worker_id: str) -> list[Booking]:
    return [b for b in bookings if b.worker_id == worker_id and b.status == BookingStatus.COMPLETED]


def worker_earnings(bookings: Iterable[Booking], worker_id: str) -> float:
    return round(sum(b.fare for b in worker_history(bookings, worker_id)), 2)
