"""Object graph shared by the HTTP app and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cip.classifier import TypeClassifier, build_classifier
from cip.config import Settings
from cip.pipeline import (
    BatchRunner,
    CandidatePipeline,
    DeduplicationEngine,
    ProvinceIndex,
)
from cip.pipeline.store import CatalogReader, PipelineStore, ProvinceSource
from cip.review import CandidateReviewService, CatalogWriter, LoggingNotifier, Notifier


@dataclass
class Container:
    settings: Settings
    store: PipelineStore
    provinces: ProvinceIndex
    dedup: DeduplicationEngine
    classifier: TypeClassifier
    pipeline: CandidatePipeline
    sync_runner: BatchRunner
    process_runner: BatchRunner
    review: CandidateReviewService


def wire(
    settings: Settings,
    store: PipelineStore,
    province_source: ProvinceSource,
    catalog_reader: CatalogReader,
    catalog_writer: CatalogWriter,
    classifier: Optional[TypeClassifier] = None,
    notifier: Optional[Notifier] = None,
) -> Container:
    """Assemble services around the given storage adapters."""
    provinces = ProvinceIndex(province_source, settings)
    dedup = DeduplicationEngine(catalog_reader, settings)
    classifier = classifier or build_classifier(settings)
    pipeline = CandidatePipeline(store, dedup, classifier, provinces, settings)
    return Container(
        settings=settings,
        store=store,
        provinces=provinces,
        dedup=dedup,
        classifier=classifier,
        pipeline=pipeline,
        sync_runner=BatchRunner(pipeline, store, settings),
        process_runner=BatchRunner(pipeline, store, settings),
        review=CandidateReviewService(store, catalog_writer, dedup, notifier, settings),
    )


def build_container(settings: Optional[Settings] = None) -> Container:
    """Production wiring backed by PostgreSQL."""
    from cip.db import PostgresStore
    from cip.review import PostgresCatalogWriter

    settings = settings or Settings()
    store = PostgresStore(settings)
    return wire(
        settings,
        store=store,
        province_source=store,
        catalog_reader=store,
        catalog_writer=PostgresCatalogWriter(settings),
        notifier=LoggingNotifier(),
    )
