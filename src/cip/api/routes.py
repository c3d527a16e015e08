"""Admin routes for sync runs, processing and candidate review."""

from __future__ import annotations

from typing import NoReturn, Optional, Sequence

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request, status
from pydantic import ValidationError

from cip.api.container import Container
from cip.api.schemas import (
    ApproveRequest,
    BulkApproveRequest,
    CancelRequest,
    CancelResponse,
    ErrorResponse,
    ProcessRequest,
    RejectRequest,
    RunStarted,
    SyncTriggerRequest,
)
from cip.errors import BatchAlreadyRunning
from cip.models import (
    ApproveResult,
    BulkApproveResult,
    CandidateComparison,
    CandidateFilter,
    CandidatePage,
    CandidateStatus,
    ImportCandidate,
    RawPlace,
    RunProgress,
    SyncRunPage,
    SyncStatus,
)
from cip.pipeline import BatchRunner, ProvinceIndex
from cip.utils.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/admin/places", tags=["admin"])


def get_container(request: Request) -> Container:
    return request.app.state.container


def require_admin(x_admin_id: Optional[str] = Header(default=None, alias="X-Admin-Id")) -> str:
    if not x_admin_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "X-Admin-Id header is required"},
        )
    return x_admin_id


def _execute(runner: BatchRunner, raw_place_ids: Sequence[str]) -> None:
    try:
        runner.execute(raw_place_ids)
    except Exception as exc:
        # The runner has already logged and recorded the failure on the job.
        logger.error("api.background_run_failed error=%s", exc)


def select_for_sync(
    places: Sequence[RawPlace],
    provinces: ProvinceIndex,
    regions: Optional[Sequence[str]],
    max_items: Optional[int],
) -> list[str]:
    """Filter raw places to the requested regions and cap the count."""
    selected = list(places)
    if regions:
        wanted = set()
        for region in regions:
            match = provinces.match_by_name(region)
            if match is None:
                logger.warning("sync.unknown_region name=%r", region)
                continue
            wanted.add(match.id)

        def _in_regions(raw: RawPlace) -> bool:
            try:
                place = raw.place()
            except ValidationError as exc:
                logger.warning(
                    "sync.unreadable_payload raw_place_id=%s errors=%s", raw.id, exc.error_count()
                )
                return False
            if place.lat is None or place.lng is None:
                return False
            match = provinces.match_by_coordinates(place.lat, place.lng)
            return match is not None and match.id in wanted

        selected = [raw for raw in selected if _in_regions(raw)]

    if max_items is not None:
        selected = selected[:max_items]
    return [raw.id for raw in selected]


@router.post(
    "/sync/trigger",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=RunStarted,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
)
def trigger_sync(
    body: SyncTriggerRequest,
    background_tasks: BackgroundTasks,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> RunStarted:
    runner = container.sync_runner
    if runner.is_running:
        _conflict("SYNC_ALREADY_RUNNING", "A sync is already running", runner)

    statuses = [SyncStatus.PENDING] if body.sync_type == "incremental" else None
    places = container.store.list_raw_places(statuses=statuses)
    raw_place_ids = select_for_sync(places, container.provinces, body.regions, body.max_items)

    try:
        run_id = runner.acquire(
            f"sync_{body.sync_type}",
            len(raw_place_ids),
            triggered_by=admin_id,
            config=body.model_dump(),
        )
    except BatchAlreadyRunning as exc:
        _conflict("SYNC_ALREADY_RUNNING", str(exc), runner, exc.active_run_id)

    background_tasks.add_task(_execute, runner, raw_place_ids)
    logger.info(
        "api.sync_triggered run_id=%s sync_type=%s total=%s admin_id=%s",
        run_id,
        body.sync_type,
        len(raw_place_ids),
        admin_id,
    )
    return RunStarted(run_id=run_id, total=len(raw_place_ids), message="Sync started")


@router.get("/sync/status", response_model=Optional[RunProgress])
def sync_status(container: Container = Depends(get_container)) -> Optional[RunProgress]:
    return container.sync_runner.progress()


@router.post("/sync/cancel", response_model=CancelResponse)
def cancel_sync(
    body: CancelRequest,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> CancelResponse:
    container.sync_runner.cancel(body.run_id)
    logger.info("api.sync_cancel run_id=%s admin_id=%s", body.run_id, admin_id)
    return CancelResponse(run_id=body.run_id)


@router.get("/sync/logs", response_model=SyncRunPage)
def sync_logs(
    status_filter: Optional[SyncStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    container: Container = Depends(get_container),
) -> SyncRunPage:
    return container.store.list_sync_runs(status=status_filter, limit=limit, offset=offset)


@router.get("/candidates", response_model=CandidatePage)
def list_candidates(
    status_filter: Optional[CandidateStatus] = Query(default=None, alias="status"),
    min_confidence: Optional[float] = Query(default=None, ge=0.0, le=1.0),
    is_duplicate: Optional[bool] = Query(default=None),
    region_id: Optional[int] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    container: Container = Depends(get_container),
) -> CandidatePage:
    filters = CandidateFilter(
        status=status_filter,
        min_confidence=min_confidence,
        is_duplicate=is_duplicate,
        region_id=region_id,
        limit=limit,
        offset=offset,
    )
    return container.review.list_candidates(filters)


@router.post("/candidates/bulk-approve", response_model=BulkApproveResult)
def bulk_approve(
    body: BulkApproveRequest,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> BulkApproveResult:
    return container.review.bulk_approve(body.candidate_ids, admin_id)


@router.get("/candidates/{candidate_id}", response_model=CandidateComparison)
def get_candidate(
    candidate_id: str, container: Container = Depends(get_container)
) -> CandidateComparison:
    return container.review.get_comparison(candidate_id)


@router.post("/candidates/{candidate_id}/approve", response_model=ApproveResult)
def approve_candidate(
    candidate_id: str,
    body: ApproveRequest,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> ApproveResult:
    return container.review.approve(
        candidate_id,
        admin_id,
        edits=body.edits,
        owner_id=body.owner_id,
        featured=body.featured,
    )


@router.post("/candidates/{candidate_id}/reject", response_model=ImportCandidate)
def reject_candidate(
    candidate_id: str,
    body: RejectRequest,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> ImportCandidate:
    return container.review.reject(candidate_id, admin_id, body.reason, notes=body.notes)


@router.post(
    "/process",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=RunStarted,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
def process_places(
    body: ProcessRequest,
    background_tasks: BackgroundTasks,
    container: Container = Depends(get_container),
    admin_id: str = Depends(require_admin),
) -> RunStarted:
    runner = container.process_runner
    if body.process_all:
        places = container.store.list_raw_places(
            statuses=[SyncStatus.PENDING], limit=container.settings.process_all_cap
        )
        raw_place_ids = [raw.id for raw in places]
    elif body.raw_place_ids:
        raw_place_ids = list(dict.fromkeys(body.raw_place_ids))
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "VALIDATION_ERROR",
                "message": "Provide raw_place_ids or set process_all",
            },
        )

    try:
        run_id = runner.acquire(
            "process",
            len(raw_place_ids),
            triggered_by=admin_id,
            config={"process_all": body.process_all},
        )
    except BatchAlreadyRunning as exc:
        _conflict("PROCESSING_ALREADY_RUNNING", str(exc), runner, exc.active_run_id)

    background_tasks.add_task(_execute, runner, raw_place_ids)
    logger.info(
        "api.process_started run_id=%s total=%s admin_id=%s", run_id, len(raw_place_ids), admin_id
    )
    return RunStarted(run_id=run_id, total=len(raw_place_ids), message="Processing started")


def _conflict(
    code: str, message: str, runner: BatchRunner, run_id: Optional[str] = None
) -> NoReturn:
    if run_id is None:
        progress = runner.progress()
        run_id = progress.run_id if progress else None
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": code, "message": message, "run_id": run_id},
    )
