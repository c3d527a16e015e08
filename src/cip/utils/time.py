"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_seconds(started_at: datetime, finished_at: Optional[datetime] = None) -> int:
    """Whole seconds between two instants."""
    finished_at = finished_at or utc_now()
    return max(0, int((finished_at - started_at).total_seconds()))
