"""Sync run job records."""

from __future__ import annotations

from typing import Any, Optional

from psycopg import Cursor
from psycopg.types.json import Jsonb

from cip.models import BatchResult, SyncRun, SyncStatus

SYNC_RUN_COLUMNS = (
    "id::text as id, run_type, status, triggered_by, started_at, completed_at, "
    "duration_seconds, total, successful, failed, candidates_created, error_message, config"
)


def create_run(
    cursor: Cursor,
    run_type: str,
    total: int,
    triggered_by: Optional[str] = None,
    config: Optional[dict[str, Any]] = None,
) -> SyncRun:
    cursor.execute(
        "insert into sync_runs (run_type, status, triggered_by, total, config) "
        f"values (%s, 'processing', %s, %s, %s) returning {SYNC_RUN_COLUMNS}",
        (run_type, triggered_by, total, Jsonb(config or {})),
    )
    return SyncRun.model_validate(cursor.fetchone())


def complete_run_success(cursor: Cursor, run_id: str, result: BatchResult) -> None:
    cursor.execute(
        "update sync_runs set status = 'completed', completed_at = now(), "
        "duration_seconds = extract(epoch from now() - started_at)::int, "
        "successful = %s, failed = %s, candidates_created = %s, "
        "config = config || %s where id = %s",
        (
            result.successful,
            result.failed,
            result.candidates_created,
            Jsonb({"cancelled": result.cancelled}),
            run_id,
        ),
    )


def complete_run_failed(
    cursor: Cursor,
    run_id: str,
    error: str,
    result: Optional[BatchResult] = None,
) -> None:
    result = result or BatchResult()
    cursor.execute(
        "update sync_runs set status = 'failed', completed_at = now(), "
        "duration_seconds = extract(epoch from now() - started_at)::int, "
        "successful = %s, failed = %s, candidates_created = %s, error_message = %s "
        "where id = %s",
        (result.successful, result.failed, result.candidates_created, error, run_id),
    )


def list_runs(
    cursor: Cursor,
    status: Optional[SyncStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[SyncRun], int]:
    where = ""
    params: list[object] = []
    if status is not None:
        where = " where status = %s"
        params.append(status.value)

    cursor.execute(f"select count(*) as total from sync_runs{where}", params)
    total = int(cursor.fetchone()["total"])
    cursor.execute(
        f"select {SYNC_RUN_COLUMNS} from sync_runs{where} "
        "order by started_at desc limit %s offset %s",
        [*params, limit, offset],
    )
    return [SyncRun.model_validate(row) for row in cursor.fetchall()], total


def fail_stale_runs(cursor: Cursor) -> int:
    cursor.execute(
        "update sync_runs set status = 'failed', completed_at = now(), "
        "error_message = 'Interrupted: process exited before the run finished' "
        "where status = 'processing'"
    )
    return cursor.rowcount or 0
