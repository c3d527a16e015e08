"""Listing type categories and AI output schema."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, field_validator

from cip.models import clamp_unit


@dataclass(frozen=True)
class ListingType:
    id: int
    name: str
    description: str


CAMPING = ListingType(1, "Camping", "Basic camping sites, tents, minimal facilities")
GLAMPING = ListingType(2, "Glamping", "Luxury camping with comfort amenities, AC, proper beds")
TENTED_RESORT = ListingType(
    3, "Tented Resort", "Resort-style accommodation in tents, full facilities"
)
BUNGALOW = ListingType(4, "Bungalow", "Permanent structures, cabins, cottages")

LISTING_TYPES: tuple[ListingType, ...] = (CAMPING, GLAMPING, TENTED_RESORT, BUNGALOW)
LISTING_TYPES_BY_ID: dict[int, ListingType] = {t.id: t for t in LISTING_TYPES}
DEFAULT_TYPE = CAMPING
DEFAULT_CONFIDENCE = 0.5


class ClassificationOutput(BaseModel):
    """Structured output expected from the AI fallback."""

    type_id: int
    type_name: str = ""
    confidence: float = 0.0
    reasoning: str = ""

    @field_validator("type_id")
    @classmethod
    def _validate_type_id(cls, value: int) -> int:
        if value not in LISTING_TYPES_BY_ID:
            raise ValueError(f"type_id must be one of {sorted(LISTING_TYPES_BY_ID)}")
        return value

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return clamp_unit(value)

    @property
    def canonical_name(self) -> str:
        return LISTING_TYPES_BY_ID[self.type_id].name


def category_definitions() -> str:
    """Numbered category list for prompts."""
    return "\n".join(f"{t.id}. {t.name} - {t.description}" for t in LISTING_TYPES)
