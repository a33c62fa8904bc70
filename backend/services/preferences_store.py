"""Local persistence for filter state, search history and recently viewed listings.

A single JSON file acts as a key-value store: last write wins and there is
no schema versioning. Values are validated on the way out, not on the way in.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from models.filters import FilterState
from models.internship import Internship
from models.responses import RecentlyViewedItem

logger = logging.getLogger(__name__)

FILTER_STORAGE_KEY = "saksham_filters"
SEARCH_HISTORY_KEY = "saksham_search_history"
RECENTLY_VIEWED_KEY = "recentlyViewed"

MAX_HISTORY_ITEMS = 10
MAX_RECENTLY_VIEWED = 10


class JsonKeyValueStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Preferences file %s is corrupt, treating as empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


# --- Filter state ---


def save_filters(store: JsonKeyValueStore, filters: FilterState) -> None:
    store.set(FILTER_STORAGE_KEY, filters.model_dump(mode="json"))


def load_filters(store: JsonKeyValueStore) -> FilterState | None:
    raw = store.get(FILTER_STORAGE_KEY)
    if raw is None:
        return None
    try:
        return FilterState.model_validate(raw)
    except ValidationError as e:
        logger.warning("Ignoring stored filters that no longer validate: %s", e.errors()[0]["msg"])
        return None


def clear_filters(store: JsonKeyValueStore) -> None:
    store.remove(FILTER_STORAGE_KEY)


# --- Search history ---


def _normalize_history(raw: Any) -> list[str]:
    """Accept legacy entries stored as {"query": ...} objects."""
    if not isinstance(raw, list):
        return []
    queries = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("query")
        if isinstance(item, str) and item:
            queries.append(item)
    return queries[:MAX_HISTORY_ITEMS]


def get_search_history(store: JsonKeyValueStore) -> list[str]:
    return _normalize_history(store.get(SEARCH_HISTORY_KEY, []))


def add_search(store: JsonKeyValueStore, query: str) -> list[str]:
    """Record a query as most recent. Blank queries are ignored."""
    query = query.strip()
    history = get_search_history(store)
    if not query:
        return history
    history = [query] + [item for item in history if item != query]
    history = history[:MAX_HISTORY_ITEMS]
    store.set(SEARCH_HISTORY_KEY, history)
    return history


def remove_search(store: JsonKeyValueStore, query: str) -> list[str]:
    history = [item for item in get_search_history(store) if item != query]
    store.set(SEARCH_HISTORY_KEY, history)
    return history


def clear_search_history(store: JsonKeyValueStore) -> None:
    store.remove(SEARCH_HISTORY_KEY)


# --- Recently viewed ---


def get_recently_viewed(store: JsonKeyValueStore) -> list[RecentlyViewedItem]:
    raw = store.get(RECENTLY_VIEWED_KEY, [])
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        try:
            items.append(RecentlyViewedItem.model_validate(entry))
        except ValidationError:
            logger.debug("Dropping malformed recently viewed entry: %r", entry)
    return items


def add_recently_viewed(
    store: JsonKeyValueStore,
    internship: Internship,
    viewed_at: datetime | None = None,
) -> list[RecentlyViewedItem]:
    viewed_at = viewed_at or datetime.now(timezone.utc)
    item = RecentlyViewedItem(
        id=internship.id,
        title=internship.title,
        company=internship.company,
        viewed_at=viewed_at.isoformat(),
    )
    items = [item] + [i for i in get_recently_viewed(store) if i.id != item.id]
    items = items[:MAX_RECENTLY_VIEWED]
    store.set(RECENTLY_VIEWED_KEY, [i.model_dump() for i in items])
    return items


def clear_recently_viewed(store: JsonKeyValueStore) -> None:
    store.remove(RECENTLY_VIEWED_KEY)
