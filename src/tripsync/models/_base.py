"""Base model for persisted tripsync documents.

Every stored or transmitted model inherits from :class:`TripSyncBaseModel`
which provides:

* ``alias_generator=to_camel`` so documents use camelCase keys on the
  wire while Python code uses snake_case fields.
* ``populate_by_name=True`` so either spelling is accepted on input.
* Frozen instances; updates are expressed with ``model_copy``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

LatLng = tuple[float, float]
"""A ``(latitude, longitude)`` pair in decimal degrees."""


class TripSyncBaseModel(BaseModel):
    """Base for tripsync documents."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict using wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
