"""Request and response bodies for the admin API."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class SyncTriggerRequest(BaseModel):
    sync_type: Literal["full", "incremental"] = "incremental"
    regions: Optional[list[str]] = None
    max_items: Optional[int] = Field(default=None, ge=1, le=5000)

    @field_validator("regions")
    @classmethod
    def _drop_blank_regions(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        cleaned = [region.strip() for region in value if region and region.strip()]
        return cleaned or None


class RunStarted(BaseModel):
    run_id: str
    total: int
    message: str


class CancelRequest(BaseModel):
    run_id: str


class CancelResponse(BaseModel):
    run_id: str
    cancel_requested: bool = True


class ApproveRequest(BaseModel):
    edits: Optional[dict[str, Any]] = None
    owner_id: Optional[str] = None
    featured: bool = False


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=2000)


class BulkApproveRequest(BaseModel):
    candidate_ids: list[str] = Field(min_length=1, max_length=100)
    # Accepted for compatibility; bulk approval never assigns owners.
    auto_assign_owner: bool = False


class ProcessRequest(BaseModel):
    raw_place_ids: Optional[list[str]] = None
    process_all: bool = False


class ErrorBody(BaseModel):
    code: str
    message: str
    run_id: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: ErrorBody
