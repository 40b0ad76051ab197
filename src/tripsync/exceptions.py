"""Custom exception hierarchy for tripsync."""

from __future__ import annotations


class TripSyncError(Exception):
    """Base exception for all tripsync errors."""


class TripSyncConfigError(TripSyncError):
    """Invalid or missing configuration."""


class TripSyncTransportError(TripSyncError):
    """Network-level failure (unreachable, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class MalformedResponseError(TripSyncTransportError):
    """A service answered, but the payload does not have the expected shape.

    Callers treat this exactly like a network failure.
    """


class BackendUnavailableError(TripSyncTransportError):
    """The persistence backend could not accept a write."""


class BookingNotFoundError(TripSyncError):
    """A mutation targeted a booking id the store does not know."""

    def __init__(self, booking_id: str) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id!r} not found")


class LocationPermissionError(TripSyncError):
    """Access to the device position was refused.

    Surfaced to the user as a notice; it never changes presence state.
    """
