"""Internal constants shared across the library."""

USER_AGENT = "tripsync/0.1 (python-aiohttp)"

DEFAULT_ROUTING_URL = "https://routing.openstreetmap.de/routed-car"
DEFAULT_GEOCODING_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TOPIC_PREFIX = "tripsync"

# Fixed keys of the local storage medium.
BOOKINGS_KEY = "bookingsList"
WORKER_LOCATION_KEY = "driver_location"

# ------------------------------------------------------------------
# Fare formula  (distance km → currency units)
# ------------------------------------------------------------------

FARE_PER_KM = 0.5
FARE_BASE = 2.0


def fare_for_distance(distance_km: float | None) -> float:
    """Return the fare for a trip of *distance_km*, rounded to cents.

    A missing distance is billed as a zero-length trip.
    """
    distance = float(distance_km) if distance_km is not None else 0.0
    return round(distance * FARE_PER_KM + FARE_BASE, 2)
