"""Storage protocols the pipeline depends on.

The concrete PostgreSQL adapter lives in ``cip.db.store``; tests use
in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from cip.models import (
    BatchResult,
    CandidateDraft,
    CandidateFilter,
    CandidatePage,
    CandidateStatus,
    CatalogEntry,
    ImportCandidate,
    Province,
    RawPlace,
    SyncRun,
    SyncRunPage,
    SyncStatus,
)
from cip.pipeline.raw_import import RawLoadResult, RawPlaceRecord


class ProvinceSource(Protocol):
    def list_provinces(self) -> list[Province]:
        """Return every known region with its centroid."""


class CatalogReader(Protocol):
    def match_by_name(self, name: str, threshold: float) -> list[CatalogEntry]:
        """Return active entries whose name similarity is at least ``threshold``."""

    def active_entries(self) -> list[CatalogEntry]:
        """Return all active catalog entries."""


class PipelineStore(Protocol):
    # Raw places
    def get_raw_place(self, raw_place_id: str) -> Optional[RawPlace]:
        ...

    def list_raw_places(
        self,
        statuses: Optional[Sequence[SyncStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[RawPlace]:
        """Return raw places not yet imported, oldest fetch first."""

    def set_raw_place_status(self, raw_place_id: str, status: SyncStatus) -> None:
        ...

    def mark_raw_place_imported(self, raw_place_id: str, entry_id: str) -> None:
        ...

    def save_raw_places(self, records: Sequence[RawPlaceRecord]) -> RawLoadResult:
        """Insert or refresh raw places keyed by external id."""

    def downloaded_photo_urls(self, external_id: str, limit: int) -> list[str]:
        """URLs of photos already copied to our storage for a provider place."""

    # Candidates
    def get_candidate(self, candidate_id: str) -> Optional[ImportCandidate]:
        ...

    def find_candidate_by_raw_place(self, raw_place_id: str) -> Optional[ImportCandidate]:
        ...

    def insert_candidate(self, draft: CandidateDraft) -> ImportCandidate:
        ...

    def update_candidate(
        self, candidate_id: str, draft: CandidateDraft, keep_status: bool
    ) -> ImportCandidate:
        """Overwrite analysis fields; leave status and review fields alone when ``keep_status``."""

    def transition_candidate(
        self,
        candidate_id: str,
        from_statuses: Sequence[CandidateStatus],
        to_status: CandidateStatus,
        fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Conditionally move a candidate; False when its status was not in ``from_statuses``."""

    def list_candidates(self, filters: CandidateFilter) -> CandidatePage:
        ...

    # Sync runs
    def create_sync_run(
        self,
        run_type: str,
        total: int,
        triggered_by: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> SyncRun:
        ...

    def complete_sync_run(self, run_id: str, result: BatchResult) -> None:
        ...

    def fail_sync_run(self, run_id: str, error: str, result: Optional[BatchResult] = None) -> None:
        ...

    def list_sync_runs(
        self, status: Optional[SyncStatus] = None, limit: int = 20, offset: int = 0
    ) -> SyncRunPage:
        ...

    def fail_stale_sync_runs(self) -> int:
        """Mark runs left in ``processing`` by a dead process as failed."""
