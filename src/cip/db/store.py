"""PostgreSQL adapter for the pipeline storage protocols."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from psycopg.types.json import Jsonb

from cip.config import Settings
from cip.db import run_log
from cip.db.client import db_cursor
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
from cip.utils.logging import get_logger


logger = get_logger(__name__)

RAW_PLACE_COLUMNS = (
    "id::text as id, external_id, external_id_hash, payload, fetched_at, status, "
    "processed_at, is_imported, imported_to_entry_id::text as imported_to_entry_id, imported_at"
)

CANDIDATE_COLUMNS = (
    "id::text as id, raw_place_id::text as raw_place_id, confidence, is_duplicate, "
    "duplicate_of::text as duplicate_of, final_data, suggested_region_id, suggested_type_id, "
    "status, warnings, reviewer_id, reviewed_at, rejection_reason, admin_notes, "
    "imported_to::text as imported_to, imported_at, created_at, updated_at"
)

CATALOG_COLUMNS = (
    "id::text as id, name, address, latitude, longitude, phone, website, is_active"
)

# Columns a transition may set besides status.
TRANSITION_FIELDS = frozenset(
    {"reviewer_id", "reviewed_at", "rejection_reason", "admin_notes", "imported_to", "imported_at"}
)


class PostgresStore:
    """Raw places, candidates, sync runs, provinces and catalog reads."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()

    # Provinces
    def list_provinces(self) -> list[Province]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "select id, name_en, name_local, slug, latitude, longitude "
                "from provinces order by id"
            )
            rows = cursor.fetchall()
        return [Province.model_validate(row) for row in rows]

    # Catalog reads
    def match_by_name(self, name: str, threshold: float) -> list[CatalogEntry]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"select {CATALOG_COLUMNS} from campsites "
                "where is_active and similarity(name, %s) >= %s "
                "order by similarity(name, %s) desc limit 20",
                (name, threshold, name),
            )
            rows = cursor.fetchall()
        return [CatalogEntry.model_validate(row) for row in rows]

    def active_entries(self) -> list[CatalogEntry]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(f"select {CATALOG_COLUMNS} from campsites where is_active")
            rows = cursor.fetchall()
        return [CatalogEntry.model_validate(row) for row in rows]

    # Raw places
    def get_raw_place(self, raw_place_id: str) -> Optional[RawPlace]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"select {RAW_PLACE_COLUMNS} from raw_places where id = %s", (raw_place_id,)
            )
            row = cursor.fetchone()
        return RawPlace.model_validate(row) if row else None

    def list_raw_places(
        self,
        statuses: Optional[Sequence[SyncStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[RawPlace]:
        query = f"select {RAW_PLACE_COLUMNS} from raw_places where not is_imported"
        params: list[object] = []
        if statuses:
            query += " and status = any(%s)"
            params.append([status.value for status in statuses])
        query += " order by fetched_at asc nulls last, id"
        if limit is not None:
            query += " limit %s"
            params.append(limit)

        with db_cursor(self.settings) as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [RawPlace.model_validate(row) for row in rows]

    def set_raw_place_status(self, raw_place_id: str, status: SyncStatus) -> None:
        finished = status in (SyncStatus.COMPLETED, SyncStatus.FAILED)
        query = "update raw_places set status = %s"
        if finished:
            query += ", processed_at = now()"
        with db_cursor(self.settings) as cursor:
            cursor.execute(query + " where id = %s", (status.value, raw_place_id))

    def mark_raw_place_imported(self, raw_place_id: str, entry_id: str) -> None:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "update raw_places set is_imported = true, imported_to_entry_id = %s, "
                "imported_at = now() where id = %s",
                (entry_id, raw_place_id),
            )

    def save_raw_places(
        self, records: Sequence[RawPlaceRecord], batch_size: int = 500
    ) -> RawLoadResult:
        """Insert new raw places; refresh the payload of known ones and requeue them."""
        result = RawLoadResult(total=len(records), inserted=0, updated=0)
        if not records:
            return result

        with db_cursor(self.settings) as cursor:
            for start in range(0, len(records), batch_size):
                batch = records[start : start + batch_size]
                values: list[object] = []
                for record in batch:
                    values.extend([record.external_id, record.external_id_hash, Jsonb(record.payload)])
                cursor.execute(
                    "insert into raw_places (external_id, external_id_hash, payload) values "
                    + ",".join(["(%s, %s, %s)"] * len(batch))
                    + " on conflict (external_id) do update set payload = excluded.payload, "
                    "fetched_at = now(), "
                    "status = case when raw_places.is_imported then raw_places.status else 'pending' end "
                    "returning (xmax = 0) as inserted",
                    values,
                )
                for row in cursor.fetchall():
                    if row["inserted"]:
                        result.inserted += 1
                    else:
                        result.updated += 1
        return result

    def downloaded_photo_urls(self, external_id: str, limit: int) -> list[str]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "select url from place_photos where external_id = %s "
                "order by sort_order asc, created_at asc limit %s",
                (external_id, limit),
            )
            rows = cursor.fetchall()
        return [row["url"] for row in rows]

    # Candidates
    def get_candidate(self, candidate_id: str) -> Optional[ImportCandidate]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"select {CANDIDATE_COLUMNS} from import_candidates where id = %s", (candidate_id,)
            )
            row = cursor.fetchone()
        return ImportCandidate.model_validate(row) if row else None

    def find_candidate_by_raw_place(self, raw_place_id: str) -> Optional[ImportCandidate]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"select {CANDIDATE_COLUMNS} from import_candidates where raw_place_id = %s",
                (raw_place_id,),
            )
            row = cursor.fetchone()
        return ImportCandidate.model_validate(row) if row else None

    def insert_candidate(self, draft: CandidateDraft) -> ImportCandidate:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "insert into import_candidates (raw_place_id, confidence, is_duplicate, "
                "duplicate_of, final_data, suggested_region_id, suggested_type_id, status, warnings) "
                f"values (%s, %s, %s, %s, %s, %s, %s, %s, %s) returning {CANDIDATE_COLUMNS}",
                (
                    draft.raw_place_id,
                    draft.confidence,
                    draft.is_duplicate,
                    draft.duplicate_of,
                    Jsonb(draft.final_data),
                    draft.suggested_region_id,
                    draft.suggested_type_id,
                    draft.status.value,
                    Jsonb(draft.warnings),
                ),
            )
            row = cursor.fetchone()
        return ImportCandidate.model_validate(row)

    def update_candidate(
        self, candidate_id: str, draft: CandidateDraft, keep_status: bool
    ) -> ImportCandidate:
        assignments = [
            "confidence = %s",
            "is_duplicate = %s",
            "duplicate_of = %s",
            "final_data = %s",
            "suggested_region_id = %s",
            "suggested_type_id = %s",
            "warnings = %s",
            "updated_at = now()",
        ]
        params: list[object] = [
            draft.confidence,
            draft.is_duplicate,
            draft.duplicate_of,
            Jsonb(draft.final_data),
            draft.suggested_region_id,
            draft.suggested_type_id,
            Jsonb(draft.warnings),
        ]
        if not keep_status:
            assignments.insert(0, "status = %s")
            params.insert(0, draft.status.value)

        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"update import_candidates set {', '.join(assignments)} "
                f"where id = %s returning {CANDIDATE_COLUMNS}",
                [*params, candidate_id],
            )
            row = cursor.fetchone()
        return ImportCandidate.model_validate(row)

    def transition_candidate(
        self,
        candidate_id: str,
        from_statuses: Sequence[CandidateStatus],
        to_status: CandidateStatus,
        fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        fields = fields or {}
        unknown = set(fields) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Unsupported candidate fields: {sorted(unknown)}")

        assignments = ["status = %s", "updated_at = now()"]
        params: list[object] = [to_status.value]
        for column, value in fields.items():
            assignments.append(f"{column} = %s")
            params.append(value)

        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"update import_candidates set {', '.join(assignments)} "
                "where id = %s and status = any(%s)",
                [*params, candidate_id, [status.value for status in from_statuses]],
            )
            changed = cursor.rowcount == 1
        return changed

    def list_candidates(self, filters: CandidateFilter) -> CandidatePage:
        clauses: list[str] = []
        params: list[object] = []
        if filters.status is not None:
            clauses.append("status = %s")
            params.append(filters.status.value)
        if filters.min_confidence is not None:
            clauses.append("confidence >= %s")
            params.append(filters.min_confidence)
        if filters.is_duplicate is not None:
            clauses.append("is_duplicate = %s")
            params.append(filters.is_duplicate)
        if filters.region_id is not None:
            clauses.append("suggested_region_id = %s")
            params.append(filters.region_id)
        where = f" where {' and '.join(clauses)}" if clauses else ""

        with db_cursor(self.settings) as cursor:
            cursor.execute(f"select count(*) as total from import_candidates{where}", params)
            total = int(cursor.fetchone()["total"])
            cursor.execute(
                f"select {CANDIDATE_COLUMNS} from import_candidates{where} "
                "order by confidence desc, created_at desc limit %s offset %s",
                [*params, filters.limit, filters.offset],
            )
            rows = cursor.fetchall()

        return CandidatePage(
            items=[ImportCandidate.model_validate(row) for row in rows],
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )

    # Sync runs
    def create_sync_run(
        self,
        run_type: str,
        total: int,
        triggered_by: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> SyncRun:
        with db_cursor(self.settings) as cursor:
            return run_log.create_run(cursor, run_type, total, triggered_by, config)

    def complete_sync_run(self, run_id: str, result: BatchResult) -> None:
        with db_cursor(self.settings) as cursor:
            run_log.complete_run_success(cursor, run_id, result)

    def fail_sync_run(self, run_id: str, error: str, result: Optional[BatchResult] = None) -> None:
        with db_cursor(self.settings) as cursor:
            run_log.complete_run_failed(cursor, run_id, error, result)

    def list_sync_runs(
        self, status: Optional[SyncStatus] = None, limit: int = 20, offset: int = 0
    ) -> SyncRunPage:
        with db_cursor(self.settings) as cursor:
            items, total = run_log.list_runs(cursor, status, limit, offset)
        return SyncRunPage(items=items, total=total, limit=limit, offset=offset)

    def fail_stale_sync_runs(self) -> int:
        with db_cursor(self.settings) as cursor:
            return run_log.fail_stale_runs(cursor)
