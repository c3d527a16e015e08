"""Idempotent candidate writes keyed by raw place."""

from __future__ import annotations

from dataclasses import dataclass

from cip.models import CandidateDraft, ImportCandidate
from cip.pipeline.store import PipelineStore
from cip.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass
class UpsertResult:
    candidate: ImportCandidate
    inserted: bool


def upsert_candidate(store: PipelineStore, draft: CandidateDraft) -> UpsertResult:
    """Update the raw place's candidate in place, or insert the first one.

    A candidate a human already reviewed keeps its status and review fields;
    only the analysis fields are refreshed.
    """
    existing = store.find_candidate_by_raw_place(draft.raw_place_id)
    if existing is None:
        candidate = store.insert_candidate(draft)
        logger.debug(
            "upsert.inserted raw_place_id=%s candidate_id=%s", draft.raw_place_id, candidate.id
        )
        return UpsertResult(candidate=candidate, inserted=True)

    keep_status = existing.human_reviewed
    candidate = store.update_candidate(existing.id, draft, keep_status=keep_status)
    logger.debug(
        "upsert.updated raw_place_id=%s candidate_id=%s keep_status=%s",
        draft.raw_place_id,
        existing.id,
        keep_status,
    )
    return UpsertResult(candidate=candidate, inserted=False)
