"""Utility helpers."""

from cip.utils.geo import haversine_km
from cip.utils.hashing import external_id_hash
from cip.utils.logging import configure_logging, get_logger
from cip.utils.text import normalize_phone, normalize_website, string_similarity
from cip.utils.time import utc_now

__all__ = [
    "haversine_km",
    "external_id_hash",
    "configure_logging",
    "get_logger",
    "normalize_phone",
    "normalize_website",
    "string_similarity",
    "utc_now",
]
