"""Explicit outcome of a store write."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class WriteOutcome(StrEnum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


class WriteResult(BaseModel):
    """Result of a write, letting callers choose their own retry policy.

    Parameters
    ----------
    outcome : WriteOutcome
        What happened.
    booking_id : str or None
        Booking the write targeted, when applicable.
    detail : str
        Human readable reason for non-success outcomes.
    """

    model_config = ConfigDict(frozen=True)

    outcome: WriteOutcome
    booking_id: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == WriteOutcome.SUCCESS

    @classmethod
    def success(cls, booking_id: str | None = None) -> WriteResult:
        return cls(outcome=WriteOutcome.SUCCESS, booking_id=booking_id)

    @classmethod
    def not_found(cls, booking_id: str) -> WriteResult:
        return cls(outcome=WriteOutcome.NOT_FOUND, booking_id=booking_id, detail=f"Booking {booking_id!r} not found")

    @classmethod
    def rejected(cls, booking_id: str | None, detail: str) -> WriteResult:
        return cls(outcome=WriteOutcome.REJECTED, booking_id=booking_id, detail=detail)

    @classmethod
    def transport_error(cls, booking_id: str | None, detail: str) -> WriteResult:
        return cls(outcome=WriteOutcome.TRANSPORT_ERROR, booking_id=booking_id, detail=detail)
