"""Human review of import candidates: list, compare, approve, reject."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from pydantic import ValidationError

from cip.config import Settings
from cip.errors import (
    CandidateNotFound,
    CatalogWriteError,
    InvalidCandidateTransition,
)
from cip.models import (
    ApproveResult,
    BulkApproveFailure,
    BulkApproveResult,
    CandidateComparison,
    CandidateFilter,
    CandidatePage,
    CandidateStatus,
    ImportCandidate,
    NewListing,
    PhotoAttachment,
)
from cip.pipeline.deduplication import DeduplicationEngine
from cip.pipeline.store import PipelineStore
from cip.review.catalog import CatalogWriter, Notifier
from cip.utils.logging import get_logger
from cip.utils.time import utc_now


logger = get_logger(__name__)


class CandidateReviewService:
    """Review actions over import candidates.

    Approval is a sequence of independent writes, not one transaction. It is
    made resumable instead: the candidate is claimed with a conditional
    ``pending -> approved`` update, an ``approved`` candidate can be approved
    again to finish the import, and an entry already created for the
    candidate is reused rather than created twice.
    """

    def __init__(
        self,
        store: PipelineStore,
        catalog: CatalogWriter,
        dedup: DeduplicationEngine,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.dedup = dedup
        self.notifier = notifier
        self.settings = settings or Settings()

    def list_candidates(self, filters: Optional[CandidateFilter] = None) -> CandidatePage:
        return self.store.list_candidates(filters or CandidateFilter())

    def get_comparison(self, candidate_id: str) -> CandidateComparison:
        candidate = self._get(candidate_id)
        raw_place = self.store.get_raw_place(candidate.raw_place_id)
        original = raw_place.payload if raw_place else {}

        data = candidate.final_data
        detection = self.dedup.detect(
            data.get("name") or "",
            data.get("address") or "",
            phone=data.get("phone"),
            website=data.get("website"),
            lat=data.get("latitude"),
            lng=data.get("longitude"),
        )
        return CandidateComparison(
            candidate=candidate,
            original=original,
            final_data=data,
            duplicate_comparison=detection,
        )

    def approve(
        self,
        candidate_id: str,
        reviewer_id: str,
        edits: Optional[dict[str, Any]] = None,
        owner_id: Optional[str] = None,
        featured: bool = False,
    ) -> ApproveResult:
        return self._import(
            candidate_id,
            reviewer_id,
            edits=edits,
            owner_id=owner_id,
            featured=featured,
            with_photos=True,
        )

    def reject(
        self,
        candidate_id: str,
        reviewer_id: str,
        reason: str,
        notes: Optional[str] = None,
    ) -> ImportCandidate:
        moved = self.store.transition_candidate(
            candidate_id,
            (CandidateStatus.PENDING, CandidateStatus.APPROVED),
            CandidateStatus.REJECTED,
            {
                "reviewer_id": reviewer_id,
                "reviewed_at": utc_now(),
                "rejection_reason": reason,
                "admin_notes": notes,
            },
        )
        if not moved:
            candidate = self._get(candidate_id)
            raise InvalidCandidateTransition(
                candidate_id, candidate.status.value, CandidateStatus.REJECTED.value
            )

        logger.info("review.rejected candidate_id=%s reviewer_id=%s", candidate_id, reviewer_id)
        return self._get(candidate_id)

    def bulk_approve(self, candidate_ids: Sequence[str], reviewer_id: str) -> BulkApproveResult:
        """Approve each candidate without edits, photos or owner."""
        result = BulkApproveResult()
        for candidate_id in candidate_ids:
            try:
                approved = self._import(candidate_id, reviewer_id, with_photos=False)
            except Exception as exc:
                logger.error("review.bulk_item_failed candidate_id=%s error=%s", candidate_id, exc)
                result.failed.append(BulkApproveFailure(candidate_id=candidate_id, error=str(exc)))
            else:
                result.imported.append(approved.entry_id)

        logger.info(
            "review.bulk_approve total=%s imported=%s failed=%s reviewer_id=%s",
            len(candidate_ids),
            len(result.imported),
            len(result.failed),
            reviewer_id,
        )
        return result

    def _import(
        self,
        candidate_id: str,
        reviewer_id: str,
        edits: Optional[dict[str, Any]] = None,
        owner_id: Optional[str] = None,
        featured: bool = False,
        with_photos: bool = True,
    ) -> ApproveResult:
        candidate = self._claim(candidate_id, reviewer_id)
        data = {**candidate.final_data, **(edits or {})}

        entry_id = self.catalog.find_by_source_candidate(candidate_id)
        if entry_id is None:
            listing = self._listing(candidate, data, owner_id, featured)
            try:
                entry_id = self.catalog.create_listing(listing)
            except Exception as exc:
                logger.exception("review.catalog_write_failed candidate_id=%s", candidate_id)
                raise CatalogWriteError(f"Failed to create catalog entry: {exc}") from exc
        else:
            logger.info("review.resume candidate_id=%s entry_id=%s", candidate_id, entry_id)

        photos_attached = 0
        if with_photos:
            photos_attached = self._attach_photos(
                entry_id, data.get("name") or "", candidate, data, edits
            )

        imported = self.store.transition_candidate(
            candidate_id,
            (CandidateStatus.APPROVED,),
            CandidateStatus.IMPORTED,
            {"imported_to": entry_id, "imported_at": utc_now()},
        )
        if not imported:
            current = self._get(candidate_id)
            logger.error(
                "review.import_lost candidate_id=%s entry_id=%s status=%s",
                candidate_id,
                entry_id,
                current.status.value,
            )
            raise InvalidCandidateTransition(
                candidate_id, current.status.value, CandidateStatus.IMPORTED.value
            )
        self.store.mark_raw_place_imported(candidate.raw_place_id, entry_id)

        logger.info(
            "review.imported candidate_id=%s entry_id=%s reviewer_id=%s photos=%s",
            candidate_id,
            entry_id,
            reviewer_id,
            photos_attached,
        )
        if owner_id:
            self._notify(owner_id, entry_id, data.get("name") or "")

        return ApproveResult(
            candidate_id=candidate_id, entry_id=entry_id, photos_attached=photos_attached
        )

    def _claim(self, candidate_id: str, reviewer_id: str) -> ImportCandidate:
        """Move ``pending -> approved``; a candidate read as ``approved`` is resumed.

        Losing the conditional update to a concurrent reviewer raises, so
        only the winner goes on to write the catalog entry.
        """
        candidate = self._get(candidate_id)
        if candidate.status == CandidateStatus.APPROVED:
            return candidate
        if candidate.status != CandidateStatus.PENDING:
            raise InvalidCandidateTransition(
                candidate_id, candidate.status.value, CandidateStatus.APPROVED.value
            )

        claimed = self.store.transition_candidate(
            candidate_id,
            (CandidateStatus.PENDING,),
            CandidateStatus.APPROVED,
            {"reviewer_id": reviewer_id, "reviewed_at": utc_now()},
        )
        if not claimed:
            current = self._get(candidate_id)
            raise InvalidCandidateTransition(
                candidate_id, current.status.value, CandidateStatus.APPROVED.value
            )
        return self._get(candidate_id)

    def _listing(
        self,
        candidate: ImportCandidate,
        data: dict[str, Any],
        owner_id: Optional[str],
        featured: bool,
    ) -> NewListing:
        try:
            return NewListing(
                source_candidate_id=candidate.id,
                owner_id=owner_id,
                region_id=data.get("region_id") or candidate.suggested_region_id,
                type_id=data.get("type_id") or candidate.suggested_type_id,
                name=data.get("name") or "",
                description=data.get("description"),
                address=data.get("address"),
                latitude=data.get("latitude"),
                longitude=data.get("longitude"),
                phone=data.get("phone"),
                email=data.get("email"),
                website=data.get("website"),
                price_min=data.get("price_min"),
                price_max=data.get("price_max"),
                rating_average=data.get("rating") or 0.0,
                review_count=data.get("user_ratings_total") or 0,
                is_featured=featured,
                is_verified=True,
            )
        except ValidationError as exc:
            raise CatalogWriteError(f"Invalid listing data: {exc.error_count()} error(s)") from exc

    def _attach_photos(
        self,
        entry_id: str,
        name: str,
        candidate: ImportCandidate,
        data: dict[str, Any],
        edits: Optional[dict[str, Any]],
    ) -> int:
        urls = self._photo_urls(candidate, data, edits)
        for index, url in enumerate(urls):
            photo = PhotoAttachment(
                url=url,
                alt_text=f"{name} - Photo {index + 1}",
                is_primary=index == 0,
                sort_order=index,
            )
            try:
                self.catalog.attach_photo(entry_id, photo)
            except Exception as exc:
                logger.exception("review.photo_attach_failed entry_id=%s index=%s", entry_id, index)
                raise CatalogWriteError(f"Failed to attach photo {index + 1}: {exc}") from exc
        return len(urls)

    def _photo_urls(
        self,
        candidate: ImportCandidate,
        data: dict[str, Any],
        edits: Optional[dict[str, Any]],
    ) -> list[str]:
        limit = self.settings.approve_max_photos
        if edits and edits.get("photos"):
            return [str(url) for url in edits["photos"]][:limit]

        external_id = data.get("external_id")
        if external_id:
            downloaded = self.store.downloaded_photo_urls(external_id, limit)
            if downloaded:
                return downloaded[:limit]

        return [str(ref) for ref in data.get("photos") or [] if ref][:limit]

    def _notify(self, owner_id: str, entry_id: str, name: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.listing_imported(owner_id, entry_id, name)
        except Exception as exc:
            logger.warning(
                "review.notify_failed owner_id=%s entry_id=%s error=%s", owner_id, entry_id, exc
            )

    def _get(self, candidate_id: str) -> ImportCandidate:
        candidate = self.store.get_candidate(candidate_id)
        if candidate is None:
            raise CandidateNotFound(candidate_id)
        return candidate
