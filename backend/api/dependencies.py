"""Shared dependencies for API routes."""

from functools import lru_cache

from config import settings
from services.ai_queue import AIQueue
from services.gemini_client import get_client
from services.listing_store import ListingStore
from services.preferences_store import JsonKeyValueStore


@lru_cache
def get_listing_store() -> ListingStore:
    return ListingStore(settings.listings_path)


@lru_cache
def get_preferences() -> JsonKeyValueStore:
    return JsonKeyValueStore(settings.preferences_path)


@lru_cache
def get_ai_queue() -> AIQueue:
    return AIQueue(
        get_client().generate_text,
        cache_ttl=settings.ai_cache_ttl_seconds,
        cache_max_entries=settings.ai_cache_max_entries,
        max_retries=settings.ai_max_retries,
        retry_base_delay=settings.ai_retry_base_delay,
        request_interval=settings.ai_request_interval,
    )
