"""In-memory province lookup by coordinates or name."""

from __future__ import annotations

from typing import Optional

from cip.config import Settings
from cip.models import Province, ProvinceMatch
from cip.pipeline.store import ProvinceSource
from cip.utils.geo import haversine_km
from cip.utils.logging import get_logger
from cip.utils.text import normalize_for_match


logger = get_logger(__name__)


class ProvinceIndex:
    """Cached provinces with nearest-centroid and name matching.

    Build it once at startup and call :meth:`load` before handing it to the
    pipeline. A failed load leaves the index empty; every lookup then
    returns ``None`` and callers fall back to the default region.
    """

    def __init__(self, source: ProvinceSource, settings: Optional[Settings] = None) -> None:
        self.source = source
        self.settings = settings or Settings()
        self._provinces: list[Province] = []
        self._by_key: dict[str, Province] = {}
        self.loaded = False

    def load(self) -> int:
        """Load every province from the source and return the count."""
        try:
            provinces = self.source.list_provinces()
        except Exception as exc:
            logger.error("province_index.load_failed error=%s", exc)
            provinces = []

        by_key: dict[str, Province] = {}
        for province in provinces:
            for key in (province.slug, province.name_en, province.name_local):
                normalized = normalize_for_match(key)
                if normalized:
                    by_key.setdefault(normalized, province)

        self._provinces = sorted(provinces, key=lambda p: p.name_en)
        self._by_key = by_key
        self.loaded = True
        logger.info("province_index.loaded count=%s", len(self._provinces))
        return len(self._provinces)

    def __len__(self) -> int:
        return len(self._provinces)

    def all(self) -> list[Province]:
        return list(self._provinces)

    def get(self, province_id: int) -> Optional[Province]:
        for province in self._provinces:
            if province.id == province_id:
                return province
        return None

    def match_by_coordinates(self, lat: float, lng: float) -> Optional[ProvinceMatch]:
        """Return the nearest province, or None when it is too far away."""
        nearest: Optional[Province] = None
        nearest_km = float("inf")
        for province in self._provinces:
            if province.latitude is None or province.longitude is None:
                continue
            distance = haversine_km(lat, lng, province.latitude, province.longitude)
            if distance < nearest_km:
                nearest, nearest_km = province, distance

        if nearest is None:
            return None

        if nearest_km > self.settings.province_max_distance_km:
            logger.warning(
                "province_index.too_far lat=%s lng=%s nearest=%s distance_km=%.1f",
                lat,
                lng,
                nearest.slug,
                nearest_km,
            )
            return None

        return ProvinceMatch(id=nearest.id, name=nearest.name_en, distance_km=round(nearest_km, 3))

    def match_by_name(self, name: str) -> Optional[ProvinceMatch]:
        """Case-insensitive exact match, then containment either way."""
        needle = normalize_for_match(name)
        if not needle:
            return None

        exact = self._by_key.get(needle)
        if exact is not None:
            return ProvinceMatch(id=exact.id, name=exact.name_en)

        for key, province in self._by_key.items():
            if needle in key or key in needle:
                return ProvinceMatch(id=province.id, name=province.name_en)

        return None
