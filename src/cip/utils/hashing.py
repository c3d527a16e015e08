"""Hashing helpers for raw place identity."""

from __future__ import annotations

import hashlib


def external_id_hash(external_id: str) -> str:
    """Return a short SHA-256 hash of a provider identifier."""
    return hashlib.sha256(external_id.encode("utf-8")).hexdigest()[:16]
