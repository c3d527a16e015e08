"""Catalog write side and owner notifications used by candidate review."""

from __future__ import annotations

from typing import Optional, Protocol

from cip.config import Settings
from cip.db.client import db_cursor
from cip.models import NewListing, PhotoAttachment
from cip.utils.logging import get_logger


logger = get_logger(__name__)


class CatalogWriter(Protocol):
    def find_by_source_candidate(self, candidate_id: str) -> Optional[str]:
        """Return the entry id created from ``candidate_id``, if any."""

    def create_listing(self, listing: NewListing) -> str:
        """Create a catalog entry and return its id."""

    def attach_photo(self, entry_id: str, photo: PhotoAttachment) -> None:
        """Attach a photo; attaching at an occupied ``sort_order`` is a no-op."""


class Notifier(Protocol):
    def listing_imported(self, owner_id: str, entry_id: str, name: str) -> None:
        """Tell an owner a listing was published for them."""


class LoggingNotifier:
    """Notifier that only records the event in the log."""

    def listing_imported(self, owner_id: str, entry_id: str, name: str) -> None:
        logger.info("notify.listing_imported owner_id=%s entry_id=%s name=%r", owner_id, entry_id, name)


class PostgresCatalogWriter:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()

    def find_by_source_candidate(self, candidate_id: str) -> Optional[str]:
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "select id::text as id from campsites where source_candidate_id = %s",
                (candidate_id,),
            )
            row = cursor.fetchone()
        return row["id"] if row else None

    def create_listing(self, listing: NewListing) -> str:
        columns = (
            "source_candidate_id",
            "owner_id",
            "province_id",
            "type_id",
            "name",
            "description",
            "address",
            "latitude",
            "longitude",
            "phone",
            "email",
            "website",
            "price_min",
            "price_max",
            "rating_average",
            "review_count",
            "is_featured",
            "is_verified",
        )
        values = (
            listing.source_candidate_id,
            listing.owner_id,
            listing.region_id,
            listing.type_id,
            listing.name,
            listing.description,
            listing.address,
            listing.latitude,
            listing.longitude,
            listing.phone,
            listing.email,
            listing.website,
            listing.price_min,
            listing.price_max,
            listing.rating_average,
            listing.review_count,
            listing.is_featured,
            listing.is_verified,
        )
        placeholders = ",".join(["%s"] * len(columns))
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                f"insert into campsites ({', '.join(columns)}) values ({placeholders}) "
                "returning id::text as id",
                values,
            )
            row = cursor.fetchone()
        return row["id"]

    def attach_photo(self, entry_id: str, photo: PhotoAttachment) -> None:
        """Attach a photo; a photo already stored at the same position is kept."""
        with db_cursor(self.settings) as cursor:
            cursor.execute(
                "insert into campsite_photos (campsite_id, url, alt_text, is_primary, sort_order) "
                "values (%s, %s, %s, %s, %s) on conflict (campsite_id, sort_order) do nothing",
                (entry_id, photo.url, photo.alt_text, photo.is_primary, photo.sort_order),
            )
