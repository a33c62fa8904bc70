"""Filter engine for internship listings.

Pure functions over (listings, FilterState). Listings may be ``Internship``
models or plain dicts straight from a catalogue; fields are read leniently so
a malformed record never raises, it just fails to match the dimension whose
field is missing.

Pipeline (each active dimension narrows the previous result):
1. Free-text search
2. Sector (multi-select wins over single select)
3. Skills
4. Location
5. Work mode
6. Education
7. Minimum stipend
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from models.filters import ALL, FilterState, SortKey
from models.internship import normalize_work_mode
from models.responses import Facets

logger = logging.getLogger(__name__)

# Bounds for facet extraction on pathological inputs
MAX_FACET_LISTINGS = 10_000
MAX_TAGS_PER_LISTING = 50

MULTIPLE_CITIES = "Multiple Cities"

_AMOUNT_RE = re.compile(r"\d[\d,]*")


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------

def _field(listing: Any, name: str) -> Any:
    if isinstance(listing, dict):
        return listing.get(name)
    return getattr(listing, name, None)


def _text(listing: Any, name: str) -> str:
    value = _field(listing, name)
    return value if isinstance(value, str) else ""


def _string_list(listing: Any, name: str) -> list[str]:
    value = _field(listing, name)
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    return [v for v in value if isinstance(v, str)]


def location_text(listing: Any) -> str:
    """Location as a display string; structured locations collapse to city."""
    value = _field(listing, "location")
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        city = value.get("city")
    else:
        city = getattr(value, "city", None)
    return city if isinstance(city, str) else ""


def parse_stipend(text: Any) -> int | None:
    """Leading amount in a free-text stipend, e.g. "₹20,000/month" -> 20000.

    For ranges like "₹80,000-₹1,20,000" the lower bound is returned.
    Returns None when the text carries no digits.
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return int(text)
    if not isinstance(text, str):
        return None
    match = _AMOUNT_RE.search(text)
    if not match:
        return None
    return int(match.group().replace(",", ""))


def _parse_date(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _is_set(value: str | None) -> bool:
    return bool(value) and value != ALL


# ---------------------------------------------------------------------------
# Per-dimension predicates
# ---------------------------------------------------------------------------

def matches_search(listing: Any, query: str) -> bool:
    """Case-insensitive substring match over the searchable fields."""
    needle = query.lower()
    for name in ("title", "role", "company"):
        if needle in _text(listing, name).lower():
            return True
    if needle in location_text(listing).lower():
        return True
    return any(
        needle in item.lower()
        for item in _string_list(listing, "required_skills") + _string_list(listing, "sector_tags")
    )


def _matches_sectors(listing: Any, filters: FilterState) -> bool:
    tags = _string_list(listing, "sector_tags")
    if filters.selected_sectors:
        wanted = set(filters.selected_sectors)
        return any(tag in wanted for tag in tags)
    return filters.sector in tags


def _matches_skills(listing: Any, skills: Sequence[str]) -> bool:
    wanted = set(skills)
    return any(skill in wanted for skill in _string_list(listing, "required_skills"))


def _matches_location(listing: Any, location: str) -> bool:
    return location.lower() in location_text(listing).lower()


def _matches_work_mode(listing: Any, work_mode: str) -> bool:
    value = normalize_work_mode(_field(listing, "work_mode"))
    return isinstance(value, str) and value.lower() == normalize_work_mode(work_mode).lower()


def _matches_education(listing: Any, education: str) -> bool:
    return education in _string_list(listing, "preferred_education_levels")


def _matches_min_stipend(listing: Any, minimum: int) -> bool:
    amount = parse_stipend(_field(listing, "stipend"))
    return amount is not None and amount >= minimum


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_filters(listings: Iterable[Any], filters: FilterState) -> list[Any]:
    """Return listings matching every active filter, in input order.

    The input is never mutated; the result is a new list holding the same
    record objects.
    """
    result = list(listings)

    if filters.search:
        result = [item for item in result if matches_search(item, filters.search)]

    if filters.selected_sectors or _is_set(filters.sector):
        result = [item for item in result if _matches_sectors(item, filters)]

    if filters.selected_skills:
        result = [item for item in result if _matches_skills(item, filters.selected_skills)]

    if _is_set(filters.location):
        result = [item for item in result if _matches_location(item, filters.location)]

    if _is_set(filters.work_mode):
        result = [item for item in result if _matches_work_mode(item, filters.work_mode)]

    if _is_set(filters.education):
        result = [item for item in result if _matches_education(item, filters.education)]

    if _is_set(filters.min_stipend):
        minimum = parse_stipend(filters.min_stipend)
        if minimum is None:
            logger.debug("Ignoring non-numeric min_stipend filter: %r", filters.min_stipend)
        else:
            result = [item for item in result if _matches_min_stipend(item, minimum)]

    return result


def _sort_by_date(listings: list[Any], name: str, newest_first: bool) -> list[Any]:
    """Sort on a date field; records without a valid date go last."""
    dated = []
    undated = []
    for listing in listings:
        parsed = _parse_date(_field(listing, name))
        if parsed is None:
            undated.append(listing)
        else:
            dated.append((parsed, listing))
    dated.sort(key=lambda pair: pair[0], reverse=newest_first)
    return [listing for _, listing in dated] + undated


def sort_listings(listings: Iterable[Any], sort_by: SortKey | str) -> list[Any]:
    """Sort listings by the given key. Ties preserve input order."""
    items = list(listings)
    key = SortKey(sort_by)

    if key in (SortKey.RECENT, SortKey.AI_RECOMMENDED):
        return _sort_by_date(items, "posted_date", newest_first=True)
    if key == SortKey.DEADLINE:
        return _sort_by_date(items, "application_deadline", newest_first=False)
    if key == SortKey.STIPEND_HIGH:
        return sorted(items, key=lambda item: -(parse_stipend(_field(item, "stipend")) or 0))
    if key == SortKey.STIPEND_LOW:
        return sorted(items, key=lambda item: parse_stipend(_field(item, "stipend")) or 0)
    if key == SortKey.COMPANY:
        return sorted(items, key=lambda item: _text(item, "company").casefold())
    return items


def filter_listings(listings: Iterable[Any], filters: FilterState) -> list[Any]:
    """Filter then sort: the list the UI renders."""
    return sort_listings(apply_filters(listings, filters), filters.sort_by)


def extract_facets(listings: Iterable[Any]) -> Facets:
    """Distinct sectors and locations across the full catalogue, sorted."""
    sectors: set[str] = set()
    locations: set[str] = set()

    for index, listing in enumerate(listings):
        if index >= MAX_FACET_LISTINGS:
            logger.warning("Facet extraction capped at %d listings", MAX_FACET_LISTINGS)
            break
        for tag in _string_list(listing, "sector_tags")[:MAX_TAGS_PER_LISTING]:
            if tag.strip():
                sectors.add(tag)
        location = location_text(listing)
        if location.strip() and location != MULTIPLE_CITIES:
            locations.add(location)

    return Facets(sectors=sorted(sectors), locations=sorted(locations))
