import pytest

from cip.errors import BatchAlreadyRunning, RunNotActive
from cip.models import SyncStatus
from cip.pipeline.batch import BatchRunner, recover_stale_runs

from fakes import make_place


class HookedPipeline:
    """Delegates to the real pipeline and runs a hook before each item."""

    def __init__(self, pipeline, hook):
        self.pipeline = pipeline
        self.hook = hook
        self.seen = []

    def process(self, raw_place_id):
        self.seen.append(raw_place_id)
        self.hook(len(self.seen))
        return self.pipeline.process(raw_place_id)


def _add(store, count, **overrides):
    return [
        store.add_raw_place(make_place(place_id=f"place-{i}", **overrides)).id
        for i in range(count)
    ]


def test_run_counts_results(container, store):
    ids = _add(store, 3) + ["raw-missing"]
    result = container.process_runner.run(ids)

    assert (result.successful, result.failed, result.candidates_created) == (3, 1, 3)
    assert not result.cancelled
    run = next(iter(store.sync_runs.values()))
    assert run.status == SyncStatus.COMPLETED
    assert run.total == 4
    assert run.candidates_created == 3
    assert not container.process_runner.is_running


def test_updates_are_not_counted_as_created(container, store):
    ids = _add(store, 2)
    container.process_runner.run(ids)
    result = container.process_runner.run(ids)
    assert (result.successful, result.candidates_created) == (2, 0)


def test_items_processed_in_input_order(container, store, settings):
    ids = _add(store, 3)
    hooked = HookedPipeline(container.pipeline, lambda n: None)
    BatchRunner(hooked, store, settings).run(list(reversed(ids)))
    assert hooked.seen == list(reversed(ids))


def test_second_acquire_is_rejected(container):
    runner = container.process_runner
    run_id = runner.acquire("process", 0)
    with pytest.raises(BatchAlreadyRunning) as excinfo:
        runner.acquire("process", 0)
    assert excinfo.value.active_run_id == run_id
    runner.execute([])
    assert not runner.is_running


def test_cancel_stops_between_items(container, store, settings):
    ids = _add(store, 4)
    runner = None

    def cancel_after_first(n):
        if n == 1:
            runner.cancel(runner.progress().run_id)

    hooked = HookedPipeline(container.pipeline, cancel_after_first)
    runner = BatchRunner(hooked, store, settings)
    result = runner.run(ids)

    assert result.cancelled
    assert result.successful == 1
    assert hooked.seen == ids[:1]
    assert runner.progress() is None


def test_progress_reports_current_item(container, store, settings):
    ids = _add(store, 3)
    snapshots = []
    runner = None
    hooked = HookedPipeline(container.pipeline, lambda n: snapshots.append(runner.progress()))
    runner = BatchRunner(hooked, store, settings)
    runner.run(ids)

    assert [s.current for s in snapshots] == [0, 1, 2]
    assert all(s.total == 3 for s in snapshots)
    assert runner.progress() is None


def test_cancel_unknown_run(container):
    with pytest.raises(RunNotActive):
        container.process_runner.cancel("run-404")


def test_execute_requires_acquire(container):
    with pytest.raises(RuntimeError):
        container.process_runner.execute(["raw-1"])


def test_slot_released_when_job_record_fails(container, store):
    ids = _add(store, 1)

    def broken(run_id, result):
        raise RuntimeError("db down")

    store.complete_sync_run = broken
    with pytest.raises(RuntimeError):
        container.process_runner.run(ids)

    assert not container.process_runner.is_running
    run = next(iter(store.sync_runs.values()))
    assert run.status == SyncStatus.FAILED
    assert run.error_message == "db down"


def test_recover_stale_runs(store):
    store.create_sync_run("sync_full", 10)
    store.create_sync_run("process", 5)
    assert recover_stale_runs(store) == 2
    assert all(r.status == SyncStatus.FAILED for r in store.sync_runs.values())
    assert recover_stale_runs(store) == 0
