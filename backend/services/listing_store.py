"""Internship catalogue loaded from a static JSON file."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from models.internship import Internship

logger = logging.getLogger(__name__)


class ListingSourceError(Exception):
    """The catalogue file is missing or not a JSON array."""


def load_listings(path: str | Path) -> list[Internship]:
    """Read and validate the catalogue.

    Individual records that fail validation are skipped with a warning; a
    missing file or malformed JSON raises ListingSourceError.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ListingSourceError(f"Listings file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ListingSourceError(f"Listings file is not valid JSON: {path}: {e}") from e

    if not isinstance(raw, list):
        raise ListingSourceError(f"Listings file must contain a JSON array: {path}")

    listings: list[Internship] = []
    skipped = 0
    for index, record in enumerate(raw):
        try:
            listing = Internship.model_validate(record)
        except ValidationError as e:
            skipped += 1
            logger.warning("Skipping invalid listing at index %d: %s", index, e.errors()[0]["msg"])
            continue
        if not listing.id:
            listing = listing.model_copy(update={"id": str(index)})
        listings.append(listing)

    logger.info("Loaded %d listings from %s (%d skipped)", len(listings), path, skipped)
    return listings


class ListingStore:
    """Lazily loaded, in-memory view of the catalogue."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._listings: list[Internship] | None = None
        self._by_id: dict[str, Internship] = {}

    def all(self) -> list[Internship]:
        if self._listings is None:
            self.reload()
        return self._listings

    def get(self, listing_id: str) -> Internship | None:
        if self._listings is None:
            self.reload()
        return self._by_id.get(listing_id)

    def reload(self) -> None:
        listings = load_listings(self.path)
        self._listings = listings
        self._by_id = {listing.id: listing for listing in listings}
