"""Pipeline error types."""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for expected pipeline failures."""

    code = "PIPELINE_ERROR"


class RawPlaceNotFound(PipelineError):
    code = "RAW_PLACE_NOT_FOUND"

    def __init__(self, raw_place_id: str) -> None:
        super().__init__(f"Raw place not found: {raw_place_id}")
        self.raw_place_id = raw_place_id


class RawPlaceAlreadyImported(PipelineError):
    code = "RAW_PLACE_ALREADY_IMPORTED"

    def __init__(self, raw_place_id: str) -> None:
        super().__init__(f"Raw place already imported: {raw_place_id}")
        self.raw_place_id = raw_place_id


class BatchAlreadyRunning(PipelineError):
    """A second batch was requested while one is in flight."""

    code = "ALREADY_RUNNING"

    def __init__(self, active_run_id: Optional[str] = None) -> None:
        super().__init__("Batch processing is already running")
        self.active_run_id = active_run_id


class RunNotActive(PipelineError):
    code = "RUN_NOT_ACTIVE"

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run is not active: {run_id}")
        self.run_id = run_id


class CandidateNotFound(PipelineError):
    code = "CANDIDATE_NOT_FOUND"

    def __init__(self, candidate_id: str) -> None:
        super().__init__(f"Candidate not found: {candidate_id}")
        self.candidate_id = candidate_id


class InvalidCandidateTransition(PipelineError):
    code = "INVALID_CANDIDATE_STATUS"

    def __init__(self, candidate_id: str, current: str, target: str) -> None:
        super().__init__(f"Candidate {candidate_id} cannot move from {current} to {target}")
        self.candidate_id = candidate_id
        self.current = current
        self.target = target


class CatalogWriteError(PipelineError):
    code = "CATALOG_WRITE_FAILED"
