"""Multi-signal duplicate detection against the existing catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cip.config import Settings
from cip.models import CatalogEntry, DuplicateDetection, SimilarityResult
from cip.pipeline.store import CatalogReader
from cip.utils.geo import haversine_km, is_valid_coordinate
from cip.utils.logging import get_logger
from cip.utils.text import contains_either, normalize_phone, normalize_website, string_similarity


logger = get_logger(__name__)

NAME_WEIGHT = 0.4
ADDRESS_WEIGHT = 0.3
NEAR_BONUS_KM = 0.1
NEAR_BONUS = 0.3
CLOSE_BONUS = 0.15
LOCATION_BASE_SCORE = 0.6
LOCATION_NAME_BOOST = 0.2
IDENTITY_SCORE = 1.0


@dataclass
class _Match:
    entry: CatalogEntry
    score: float
    distance_km: Optional[float]


def distance_bonus(distance_km: Optional[float], radius_km: float = 0.5) -> float:
    if distance_km is None:
        return 0.0
    if distance_km < NEAR_BONUS_KM:
        return NEAR_BONUS
    if distance_km < radius_km:
        return CLOSE_BONUS
    return 0.0


def composite_score(
    name: str,
    address: str,
    entry: CatalogEntry,
    distance_km: Optional[float],
    radius_km: float = 0.5,
) -> float:
    """Weighted name/address similarity plus a proximity bonus."""
    score = NAME_WEIGHT * string_similarity(name, entry.name)
    score += ADDRESS_WEIGHT * string_similarity(address, entry.address)
    score += distance_bonus(distance_km, radius_km)
    return min(1.0, score)


class DeduplicationEngine:
    """Rank catalog entries a place may duplicate.

    Four independent signals (name, location, phone, website) each yield
    entry scores. Scores are merged per entry by taking the maximum, except
    that a location hit on an entry already found by name adds a boost.
    """

    def __init__(self, catalog: CatalogReader, settings: Optional[Settings] = None) -> None:
        self.catalog = catalog
        self.settings = settings or Settings()

    def detect(
        self,
        name: str,
        address: str,
        phone: Optional[str] = None,
        website: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> DuplicateDetection:
        has_coords = is_valid_coordinate(lat, lng)
        matches: dict[str, _Match] = {}
        active: Optional[list[CatalogEntry]] = None

        def _active() -> list[CatalogEntry]:
            nonlocal active
            if active is None:
                active = self.catalog.active_entries()
            return active

        def _distance(entry: CatalogEntry) -> Optional[float]:
            if not has_coords or not is_valid_coordinate(entry.latitude, entry.longitude):
                return None
            return haversine_km(lat, lng, entry.latitude, entry.longitude)  # type: ignore[arg-type]

        def _raise_to(entry: CatalogEntry, score: float) -> None:
            current = matches.get(entry.id)
            if current is None:
                matches[entry.id] = _Match(entry=entry, score=score, distance_km=_distance(entry))
            elif score > current.score:
                current.score = score

        # Name
        if name:
            for entry in self.catalog.match_by_name(name, self.settings.dedup_name_threshold):
                distance = _distance(entry)
                score = composite_score(name, address, entry, distance, self.settings.dedup_radius_km)
                matches[entry.id] = _Match(entry=entry, score=score, distance_km=distance)

        # Location
        if has_coords:
            for entry in _active():
                distance = _distance(entry)
                if distance is None or distance > self.settings.dedup_radius_km:
                    continue
                existing = matches.get(entry.id)
                if existing is not None:
                    existing.score = min(1.0, existing.score + LOCATION_NAME_BOOST)
                else:
                    _raise_to(entry, LOCATION_BASE_SCORE)

        # Phone
        wanted_phone = normalize_phone(phone)
        if wanted_phone:
            for entry in _active():
                if contains_either(normalize_phone(entry.phone), wanted_phone):
                    _raise_to(entry, IDENTITY_SCORE)

        # Website
        wanted_site = normalize_website(website)
        if wanted_site:
            for entry in _active():
                if contains_either(normalize_website(entry.website), wanted_site):
                    _raise_to(entry, IDENTITY_SCORE)

        ranked = sorted(matches.values(), key=lambda m: m.score, reverse=True)
        similar = [
            SimilarityResult(
                entry_id=m.entry.id,
                name=m.entry.name,
                address=m.entry.address,
                score=round(m.score, 4),
                distance_km=round(m.distance_km, 3) if m.distance_km is not None else None,
            )
            for m in ranked[: self.settings.dedup_max_results]
        ]

        top_score = ranked[0].score if ranked else 0.0
        is_duplicate = top_score > self.settings.dedup_duplicate_threshold
        detection = DuplicateDetection(
            is_duplicate=is_duplicate,
            duplicate_of=similar[0].entry_id if is_duplicate else None,
            top_score=round(top_score, 4),
            similar=similar,
        )

        logger.debug(
            "dedup.detect name=%r matches=%s top=%.2f duplicate=%s",
            name,
            len(matches),
            top_score,
            is_duplicate,
        )
        return detection
