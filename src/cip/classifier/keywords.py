"""Keyword rules for listing type classification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cip.classifier.schemas import (
    BUNGALOW,
    CAMPING,
    DEFAULT_CONFIDENCE,
    DEFAULT_TYPE,
    GLAMPING,
    TENTED_RESORT,
    ListingType,
)
from cip.models import PlacePayload, TypeClassification

HIGH_PRICE_LEVEL = 3


@dataclass(frozen=True)
class NameRule:
    listing_type: ListingType
    confidence: float
    keywords: tuple[str, ...]
    tags: tuple[str, ...] = ()


# Evaluated in order; the first hit wins.
NAME_RULES: tuple[NameRule, ...] = (
    NameRule(GLAMPING, 0.95, ("glamping", "แกลมปิ้ง"), tags=("glamping_site",)),
    NameRule(BUNGALOW, 0.95, ("bungalow", "บังกะโล", "cabin", "cottage", "บ้านพัก")),
    NameRule(TENTED_RESORT, 0.9, ("resort", "รีสอร์ท", "tented")),
    NameRule(CAMPING, 0.95, ("camping", "แคมป์ปิ้ง", "ลานกางเต็นท์", "campsite", "campground")),
)


def _result(listing_type: ListingType, confidence: float, source: str = "keyword") -> TypeClassification:
    return TypeClassification(
        type_id=listing_type.id,
        type_name=listing_type.name,
        confidence=confidence,
        source=source,
    )


def default_classification() -> TypeClassification:
    return _result(DEFAULT_TYPE, DEFAULT_CONFIDENCE, source="default")


def classify_by_keywords(place: PlacePayload) -> TypeClassification:
    """Classify from the place name and provider type tags."""
    name = (place.name or "").lower()
    tags = {t.lower() for t in place.types}

    for rule in NAME_RULES:
        if any(keyword in name for keyword in rule.keywords) or tags.intersection(rule.tags):
            return _result(rule.listing_type, rule.confidence)

    expensive = _is_expensive(place.price_level)
    if "campground" in tags or "rv_park" in tags:
        if expensive:
            return _result(GLAMPING, 0.7)
        return _result(CAMPING, 0.85)

    if "lodging" in tags or "inn" in tags:
        if expensive:
            return _result(GLAMPING, 0.6)
        return _result(CAMPING, 0.6)

    return default_classification()


def _is_expensive(price_level: Optional[int]) -> bool:
    return price_level is not None and price_level >= HIGH_PRICE_LEVEL
