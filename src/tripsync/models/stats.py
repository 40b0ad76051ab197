"""Dashboard statistics model."""

from __future__ import annotations

from tripsync.models._base import TripSyncBaseModel


class DashboardStats(TripSyncBaseModel):
    """Aggregates shown to the observer."""

    completed_trips: int = 0
    total_trips: int = 0
    active_workers: int = 0
    total_revenue: float = 0.0
