"""Candidate review workflow."""

from cip.review.catalog import CatalogWriter, LoggingNotifier, Notifier, PostgresCatalogWriter
from cip.review.service import CandidateReviewService

__all__ = [
    "CandidateReviewService",
    "CatalogWriter",
    "LoggingNotifier",
    "Notifier",
    "PostgresCatalogWriter",
]
