"""Typer CLI entry point."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import orjson
import typer

from cip.config import Settings
from cip.errors import PipelineError
from cip.models import CandidateFilter, CandidateStatus, SyncStatus
from cip.utils.logging import configure_logging, get_logger


app = typer.Typer(help="Campsite Import Pipeline CLI")
raw_app = typer.Typer(help="Raw place commands")
process_app = typer.Typer(help="Candidate processing commands")
candidates_app = typer.Typer(help="Candidate review commands")
db_app = typer.Typer(help="Database utilities")

app.add_typer(raw_app, name="raw")
app.add_typer(process_app, name="process")
app.add_typer(candidates_app, name="candidates")
app.add_typer(db_app, name="db")

logger = get_logger(__name__)


@app.callback()
def main() -> None:
    """Initialize logging for all commands."""
    settings = Settings()
    configure_logging(settings.log_level)


def _container():
    from cip.api.container import build_container

    container = build_container(Settings())
    container.provinces.load()
    return container


def _echo_json(value: object) -> None:
    typer.echo(orjson.dumps(value, option=orjson.OPT_INDENT_2).decode())


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


@raw_app.command("load")
def raw_load(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export of place details"),
    dry_run: bool = typer.Option(False, help="Parse only; do not write to DB"),
) -> None:
    """Load provider place details into raw places (status pending)."""
    from cip.pipeline.raw_import import read_records

    try:
        records, skipped = read_records(path)
    except ValueError as exc:
        _fail(exc)

    if dry_run:
        typer.echo(f"{len(records)} record(s) parsed, {skipped} skipped")
        return

    from cip.db import PostgresStore

    result = PostgresStore(Settings()).save_raw_places(records)
    result.skipped = skipped
    logger.info(
        "raw.load.complete total=%s inserted=%s updated=%s skipped=%s",
        result.total,
        result.inserted,
        result.updated,
        result.skipped,
    )
    typer.echo(
        f"Loaded {result.total}: {result.inserted} new, {result.updated} refreshed, {skipped} skipped"
    )


@process_app.command("run")
def process_run(
    all_pending: bool = typer.Option(False, "--all", help="Process pending raw places"),
    ids: Optional[str] = typer.Option(None, help="Comma-separated raw place ids"),
    limit: int = typer.Option(100, min=1, max=5000, help="Max raw places with --all"),
    dry_run: bool = typer.Option(False, help="List what would be processed and exit"),
) -> None:
    """Run the candidate pipeline synchronously."""
    if not all_pending and not ids:
        typer.echo("Pass --all or --ids", err=True)
        raise typer.Exit(2)

    container = _container()
    if ids:
        raw_place_ids = list(dict.fromkeys(i.strip() for i in ids.split(",") if i.strip()))
    else:
        places = container.store.list_raw_places(statuses=[SyncStatus.PENDING], limit=limit)
        raw_place_ids = [raw.id for raw in places]

    if dry_run:
        logger.info("process.dry_run count=%s", len(raw_place_ids))
        for raw_place_id in raw_place_ids:
            typer.echo(raw_place_id)
        return

    try:
        result = container.process_runner.run(
            raw_place_ids, run_type="cli", config={"all": all_pending, "limit": limit}
        )
    except PipelineError as exc:
        _fail(exc)
    _echo_json(result.model_dump())


@candidates_app.command("list")
def candidates_list(
    status: Optional[CandidateStatus] = typer.Option(None, help="Filter by status"),
    min_confidence: Optional[float] = typer.Option(None, min=0.0, max=1.0),
    duplicates: Optional[bool] = typer.Option(None, "--duplicates/--no-duplicates"),
    limit: int = typer.Option(20, min=1, max=100),
    offset: int = typer.Option(0, min=0),
) -> None:
    """List import candidates, best confidence first."""
    container = _container()
    page = container.review.list_candidates(
        CandidateFilter(
            status=status,
            min_confidence=min_confidence,
            is_duplicate=duplicates,
            limit=limit,
            offset=offset,
        )
    )
    typer.echo(f"{page.total} candidate(s), showing {len(page.items)} from offset {page.offset}")
    for candidate in page.items:
        flag = " DUP" if candidate.is_duplicate else ""
        typer.echo(
            f"{candidate.id}  {candidate.status.value:<9} {candidate.confidence:.2f}{flag}  "
            f"{candidate.final_data.get('name', '')}"
        )


@candidates_app.command("show")
def candidates_show(candidate_id: str = typer.Argument(...)) -> None:
    """Show a candidate next to its original data and duplicate suspects."""
    container = _container()
    try:
        comparison = container.review.get_comparison(candidate_id)
    except PipelineError as exc:
        _fail(exc)
    _echo_json(comparison.model_dump(mode="json"))


@candidates_app.command("approve")
def candidates_approve(
    candidate_id: str = typer.Argument(...),
    reviewer: str = typer.Option(..., help="Reviewer id recorded on the candidate"),
    owner_id: Optional[str] = typer.Option(None, help="Owner to assign the new listing to"),
    featured: bool = typer.Option(False, help="Mark the listing as featured"),
) -> None:
    """Approve a candidate and publish it to the catalog."""
    container = _container()
    try:
        result = container.review.approve(
            candidate_id, reviewer, owner_id=owner_id, featured=featured
        )
    except PipelineError as exc:
        _fail(exc)
    typer.echo(f"Imported {result.candidate_id} as {result.entry_id} ({result.photos_attached} photos)")


@candidates_app.command("reject")
def candidates_reject(
    candidate_id: str = typer.Argument(...),
    reviewer: str = typer.Option(..., help="Reviewer id recorded on the candidate"),
    reason: str = typer.Option(..., help="Rejection reason"),
    notes: Optional[str] = typer.Option(None, help="Admin notes"),
) -> None:
    """Reject a candidate."""
    container = _container()
    try:
        container.review.reject(candidate_id, reviewer, reason, notes=notes)
    except PipelineError as exc:
        _fail(exc)
    typer.echo(f"Rejected {candidate_id}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the admin API."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "cip.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@db_app.command("check")
def db_check() -> None:
    """Check database connectivity."""
    from cip.db.client import check_connection

    try:
        version = check_connection()
        logger.info("db.check.ok version=%s", version)
    except Exception as exc:
        logger.error("db.check.failed: %s", exc)
        typer.echo(f"Database check failed: {exc}", err=True)
        raise typer.Exit(1)
    typer.echo("Database OK")


if __name__ == "__main__":
    app()
