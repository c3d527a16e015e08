"""FastAPI application for the campsite import admin API.

Run:
    uvicorn cip.api.app:create_app --factory --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cip import __version__
from cip.api.container import Container, build_container
from cip.api.routes import router
from cip.errors import (
    BatchAlreadyRunning,
    CandidateNotFound,
    CatalogWriteError,
    InvalidCandidateTransition,
    PipelineError,
    RawPlaceAlreadyImported,
    RawPlaceNotFound,
    RunNotActive,
)
from cip.pipeline import recover_stale_runs
from cip.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)

ERROR_STATUS: dict[type[PipelineError], int] = {
    CandidateNotFound: status.HTTP_404_NOT_FOUND,
    RawPlaceNotFound: status.HTTP_404_NOT_FOUND,
    RunNotActive: status.HTTP_404_NOT_FOUND,
    InvalidCandidateTransition: status.HTTP_409_CONFLICT,
    RawPlaceAlreadyImported: status.HTTP_409_CONFLICT,
    BatchAlreadyRunning: status.HTTP_409_CONFLICT,
    CatalogWriteError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: PipelineError) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("api.error path=%s code=%s error=%s", request.url.path, exc.code, exc)
    return JSONResponse(
        status_code=code,
        content={"detail": {"code": exc.code, "message": str(exc)}},
    )


def startup(container: Container) -> None:
    """Load the province index and close out runs a previous process abandoned."""
    count = container.provinces.load()
    logger.info("api.startup provinces=%s ai=%s", count, container.settings.ai_configured)
    try:
        recover_stale_runs(container.store)
    except Exception as exc:
        logger.warning("api.startup.recover_failed error=%s", exc)


def create_app(container: Optional[Container] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container()
        configure_logging(app.state.container.settings.log_level)
        startup(app.state.container)
        yield

    app = FastAPI(title="Campsite Import Pipeline", version=__version__, lifespan=lifespan)
    app.state.container = container
    app.add_exception_handler(PipelineError, pipeline_error_handler)  # type: ignore[arg-type]
    app.include_router(router)

    @app.get("/health")
    def health(request: Request) -> dict[str, object]:
        current: Optional[Container] = request.app.state.container
        return {
            "status": "ok",
            "provinces": len(current.provinces) if current else 0,
            "sync_running": current.sync_runner.is_running if current else False,
        }

    return app
