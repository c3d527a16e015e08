"""Listing type classification."""

from cip.classifier.keywords import classify_by_keywords
from cip.classifier.type_classifier import TypeClassifier, build_classifier

__all__ = ["classify_by_keywords", "TypeClassifier", "build_classifier"]
