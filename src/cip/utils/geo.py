"""Great-circle distance helpers."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometers between two WGS84 points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # Float rounding can push `a` past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_valid_coordinate(lat: float | None, lng: float | None) -> bool:
    """Return True when both values are present and inside WGS84 bounds."""
    if lat is None or lng is None:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
