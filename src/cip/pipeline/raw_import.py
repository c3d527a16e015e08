"""Load provider place details exported to JSON into raw place records."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import orjson
from pydantic import ValidationError

from cip.models import PlacePayload
from cip.utils.hashing import external_id_hash
from cip.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RawPlaceRecord:
    external_id: str
    external_id_hash: str
    payload: dict[str, Any]


@dataclass
class RawLoadResult:
    total: int
    inserted: int
    updated: int
    skipped: int = 0


def _items(document: Any) -> Iterable[Any]:
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for key in ("results", "places"):
            if isinstance(document.get(key), list):
                return document[key]
        if "result" in document:
            return [document["result"]]
        return [document]
    raise ValueError("Expected a JSON list or object of place details")


def parse_records(document: Any) -> tuple[list[RawPlaceRecord], int]:
    """Turn a decoded details export into records; returns (records, skipped)."""
    records: dict[str, RawPlaceRecord] = {}
    skipped = 0
    for item in _items(document):
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            place = PlacePayload.model_validate(item)
        except ValidationError as exc:
            skipped += 1
            logger.warning(
                "raw_import.skip_invalid place_id=%s errors=%s", item.get("place_id"), exc.error_count()
            )
            continue
        if not place.place_id or not place.name:
            skipped += 1
            logger.warning("raw_import.skip_incomplete place_id=%s", place.place_id)
            continue
        # Last occurrence wins for repeated ids.
        records[place.place_id] = RawPlaceRecord(
            external_id=place.place_id,
            external_id_hash=external_id_hash(place.place_id),
            payload=item,
        )
    return list(records.values()), skipped


def read_records(path: Path) -> tuple[list[RawPlaceRecord], int]:
    document = orjson.loads(path.read_bytes())
    records, skipped = parse_records(document)
    logger.info("raw_import.read path=%s records=%s skipped=%s", path, len(records), skipped)
    return records, skipped
