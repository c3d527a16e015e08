"""Core data models for the import pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncStatus(str, Enum):
    """Processing status shared by raw places and sync runs."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CandidateStatus(str, Enum):
    """Import candidate lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPORTED = "imported"

    @property
    def is_terminal(self) -> bool:
        return self in (CandidateStatus.REJECTED, CandidateStatus.IMPORTED)


CANDIDATE_TRANSITIONS: dict[CandidateStatus, frozenset[CandidateStatus]] = {
    CandidateStatus.PENDING: frozenset({CandidateStatus.APPROVED, CandidateStatus.REJECTED}),
    CandidateStatus.APPROVED: frozenset({CandidateStatus.IMPORTED, CandidateStatus.REJECTED}),
    CandidateStatus.REJECTED: frozenset(),
    CandidateStatus.IMPORTED: frozenset(),
}


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value


class LatLng(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: Optional[float] = None
    lng: Optional[float] = None


class Geometry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: Optional[LatLng] = None


class PhotoReference(BaseModel):
    model_config = ConfigDict(extra="ignore")

    photo_reference: str
    width: Optional[int] = None
    height: Optional[int] = None


class PlacePayload(BaseModel):
    """Provider place details as stored on the raw place."""

    model_config = ConfigDict(extra="ignore")

    place_id: Optional[str] = None
    name: str = ""
    formatted_address: str = ""
    geometry: Optional[Geometry] = None
    formatted_phone_number: Optional[str] = None
    international_phone_number: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    price_level: Optional[int] = None
    photos: list[PhotoReference] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    business_status: Optional[str] = None
    url: Optional[str] = None

    @field_validator("price_level", mode="before")
    @classmethod
    def _coerce_price_level(cls, value: Any) -> Any:
        # Newer provider responses send enum names instead of 0-4.
        if isinstance(value, str):
            levels = {
                "PRICE_LEVEL_FREE": 0,
                "PRICE_LEVEL_INEXPENSIVE": 1,
                "PRICE_LEVEL_MODERATE": 2,
                "PRICE_LEVEL_EXPENSIVE": 3,
                "PRICE_LEVEL_VERY_EXPENSIVE": 4,
            }
            if value.isdigit():
                return int(value)
            return levels.get(value)
        return value

    @property
    def lat(self) -> Optional[float]:
        if self.geometry and self.geometry.location:
            return self.geometry.location.lat
        return None

    @property
    def lng(self) -> Optional[float]:
        if self.geometry and self.geometry.location:
            return self.geometry.location.lng
        return None

    @property
    def phone(self) -> Optional[str]:
        return self.formatted_phone_number or self.international_phone_number


class RawPlace(BaseModel):
    """Externally sourced listing record."""

    model_config = ConfigDict(extra="ignore")

    id: str
    external_id: str
    external_id_hash: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    fetched_at: Optional[datetime] = None
    status: SyncStatus = SyncStatus.PENDING
    processed_at: Optional[datetime] = None
    is_imported: bool = False
    imported_to_entry_id: Optional[str] = None
    imported_at: Optional[datetime] = None

    def place(self) -> PlacePayload:
        return PlacePayload.model_validate(self.payload)


class CandidateDraft(BaseModel):
    """Pipeline output for one raw place, ready to upsert."""

    raw_place_id: str
    confidence: float
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None
    final_data: dict[str, Any] = Field(default_factory=dict)
    suggested_region_id: int
    suggested_type_id: int
    status: CandidateStatus = CandidateStatus.PENDING
    warnings: list[str] = Field(default_factory=list)

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return clamp_unit(value)


class ImportCandidate(BaseModel):
    """Persisted, reviewable import candidate."""

    model_config = ConfigDict(extra="ignore")

    id: str
    raw_place_id: str
    confidence: float = 0.0
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None
    final_data: dict[str, Any] = Field(default_factory=dict)
    suggested_region_id: Optional[int] = None
    suggested_type_id: Optional[int] = None
    status: CandidateStatus = CandidateStatus.PENDING
    warnings: list[str] = Field(default_factory=list)
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    imported_to: Optional[str] = None
    imported_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> float:
        # numeric(3,2) columns come back as Decimal.
        return clamp_unit(float(value or 0.0))

    @property
    def human_reviewed(self) -> bool:
        return self.reviewer_id is not None or self.status in (
            CandidateStatus.APPROVED,
            CandidateStatus.IMPORTED,
        )


class SimilarityResult(BaseModel):
    """One ranked duplicate suspect."""

    entry_id: str
    name: str
    address: Optional[str] = None
    score: float
    distance_km: Optional[float] = None


class DuplicateDetection(BaseModel):
    is_duplicate: bool = False
    duplicate_of: Optional[str] = None
    top_score: float = 0.0
    similar: list[SimilarityResult] = Field(default_factory=list)


class TypeClassification(BaseModel):
    type_id: int
    type_name: str
    confidence: float
    source: str = "keyword"


class Province(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name_en: str
    name_local: Optional[str] = None
    slug: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ProvinceMatch(BaseModel):
    id: int
    name: str
    distance_km: Optional[float] = None


class CatalogEntry(BaseModel):
    """Existing catalog listing as seen by duplicate detection."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    is_active: bool = True


class NewListing(BaseModel):
    """Payload for the catalog's create-listing interface."""

    source_candidate_id: str
    owner_id: Optional[str] = None
    region_id: Optional[int] = None
    type_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    rating_average: float = 0.0
    review_count: int = 0
    is_featured: bool = False
    is_verified: bool = True


class PhotoAttachment(BaseModel):
    url: str
    alt_text: str
    is_primary: bool = False
    sort_order: int = 0


class SyncRun(BaseModel):
    """Job record for one batch/sync run."""

    model_config = ConfigDict(extra="ignore")

    id: str
    run_type: str
    status: SyncStatus = SyncStatus.PROCESSING
    triggered_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    total: int = 0
    successful: int = 0
    failed: int = 0
    candidates_created: int = 0
    error_message: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)


class BatchResult(BaseModel):
    successful: int = 0
    failed: int = 0
    candidates_created: int = 0
    cancelled: bool = False


class RunProgress(BaseModel):
    run_id: str
    status: SyncStatus = SyncStatus.PROCESSING
    current: int = 0
    total: int = 0
    successful: int = 0
    failed: int = 0
    started_at: Optional[datetime] = None
    cancel_requested: bool = False


class CandidateFilter(BaseModel):
    status: Optional[CandidateStatus] = None
    min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    is_duplicate: Optional[bool] = None
    region_id: Optional[int] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class CandidatePage(BaseModel):
    items: list[ImportCandidate] = Field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0


class SyncRunPage(BaseModel):
    items: list[SyncRun] = Field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0


class CandidateComparison(BaseModel):
    candidate: ImportCandidate
    original: dict[str, Any] = Field(default_factory=dict)
    final_data: dict[str, Any] = Field(default_factory=dict)
    duplicate_comparison: DuplicateDetection


class ApproveResult(BaseModel):
    candidate_id: str
    entry_id: str
    photos_attached: int = 0


class BulkApproveFailure(BaseModel):
    candidate_id: str
    error: str


class BulkApproveResult(BaseModel):
    imported: list[str] = Field(default_factory=list)
    failed: list[BulkApproveFailure] = Field(default_factory=list)
