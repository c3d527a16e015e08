"""Candidate import pipeline."""

from cip.pipeline.batch import BatchRunner, recover_stale_runs
from cip.pipeline.deduplication import DeduplicationEngine
from cip.pipeline.orchestrator import CandidatePipeline, ProcessOutcome
from cip.pipeline.province_index import ProvinceIndex

__all__ = [
    "BatchRunner",
    "CandidatePipeline",
    "DeduplicationEngine",
    "ProcessOutcome",
    "ProvinceIndex",
    "recover_stale_runs",
]
