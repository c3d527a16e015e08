"""Single-flight batch runner over raw places."""

from __future__ import annotations

import threading
import time
from typing import Any, Optional, Sequence

from cip.config import Settings
from cip.errors import BatchAlreadyRunning, RunNotActive
from cip.models import BatchResult, RunProgress, SyncStatus
from cip.pipeline.orchestrator import CandidatePipeline
from cip.pipeline.store import PipelineStore
from cip.utils.logging import get_logger
from cip.utils.time import elapsed_seconds, utc_now


logger = get_logger(__name__)


class BatchRunner:
    """Run the candidate pipeline over many raw places, one at a time.

    At most one batch runs per process. ``acquire`` claims the slot and
    records the job; ``execute`` does the work and always frees the slot.
    The split lets the HTTP layer answer 409 synchronously and run the
    batch in the background.
    """

    def __init__(
        self,
        pipeline: CandidatePipeline,
        store: PipelineStore,
        settings: Optional[Settings] = None,
    ) -> None:
        self.pipeline = pipeline
        self.store = store
        self.settings = settings or Settings()
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._cancel = threading.Event()
        self._progress: Optional[RunProgress] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def acquire(
        self,
        run_type: str,
        total: int,
        triggered_by: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> str:
        """Claim the batch slot and create the job record; return its run id."""
        if not self._lock.acquire(blocking=False):
            active = self._progress.run_id if self._progress else None
            raise BatchAlreadyRunning(active)

        try:
            run = self.store.create_sync_run(
                run_type, total, triggered_by=triggered_by, config=config or {}
            )
        except Exception:
            self._lock.release()
            raise

        self._cancel.clear()
        with self._state_lock:
            self._progress = RunProgress(
                run_id=run.id,
                status=SyncStatus.PROCESSING,
                total=total,
                started_at=run.started_at or utc_now(),
            )
        logger.info("batch.acquired run_id=%s run_type=%s total=%s", run.id, run_type, total)
        return run.id

    def execute(self, raw_place_ids: Sequence[str]) -> BatchResult:
        """Process ``raw_place_ids`` in order under the slot taken by ``acquire``."""
        progress = self._progress
        if progress is None or not self._lock.locked():
            raise RuntimeError("execute() called without acquire()")

        run_id = progress.run_id
        started = utc_now()
        result = BatchResult()
        logger.info("batch.start run_id=%s total=%s", run_id, len(raw_place_ids))

        try:
            for index, raw_place_id in enumerate(raw_place_ids):
                if self._cancel.is_set():
                    result.cancelled = True
                    logger.info("batch.cancelled run_id=%s processed=%s", run_id, index)
                    break

                if index > 0 and self.settings.batch_item_delay_seconds > 0:
                    time.sleep(self.settings.batch_item_delay_seconds)

                try:
                    outcome = self.pipeline.process(raw_place_id)
                except Exception as exc:
                    result.failed += 1
                    logger.error(
                        "batch.item.failed run_id=%s raw_place_id=%s error=%s",
                        run_id,
                        raw_place_id,
                        exc,
                    )
                else:
                    result.successful += 1
                    if outcome.inserted:
                        result.candidates_created += 1
                self._advance(index + 1, result)

            self.store.complete_sync_run(run_id, result)
            logger.info(
                "batch.complete run_id=%s successful=%s failed=%s created=%s cancelled=%s duration_s=%s",
                run_id,
                result.successful,
                result.failed,
                result.candidates_created,
                result.cancelled,
                elapsed_seconds(started),
            )
            return result
        except Exception as exc:
            logger.exception("batch.failed run_id=%s", run_id)
            try:
                self.store.fail_sync_run(run_id, str(exc), result)
            except Exception as log_exc:
                logger.warning("batch.fail_record.failed run_id=%s error=%s", run_id, log_exc)
            raise
        finally:
            with self._state_lock:
                self._progress = None
            self._cancel.clear()
            self._lock.release()

    def run(
        self,
        raw_place_ids: Sequence[str],
        run_type: str = "manual",
        triggered_by: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> BatchResult:
        self.acquire(run_type, len(raw_place_ids), triggered_by=triggered_by, config=config)
        return self.execute(raw_place_ids)

    def cancel(self, run_id: str) -> None:
        progress = self._progress
        if progress is None or progress.run_id != run_id:
            raise RunNotActive(run_id)
        self._cancel.set()
        with self._state_lock:
            if self._progress is not None:
                self._progress = self._progress.model_copy(update={"cancel_requested": True})
        logger.info("batch.cancel_requested run_id=%s", run_id)

    def progress(self) -> Optional[RunProgress]:
        with self._state_lock:
            if self._progress is None:
                return None
            return self._progress.model_copy()

    def _advance(self, current: int, result: BatchResult) -> None:
        with self._state_lock:
            if self._progress is None:
                return
            self._progress = self._progress.model_copy(
                update={
                    "current": current,
                    "successful": result.successful,
                    "failed": result.failed,
                }
            )


def recover_stale_runs(store: PipelineStore) -> int:
    """Fail job records a crashed process left in ``processing``."""
    count = store.fail_stale_sync_runs()
    if count:
        logger.warning("batch.recovered_stale_runs count=%s", count)
    return count
