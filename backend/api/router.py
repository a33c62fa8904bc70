import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_ai_queue, get_listing_store, get_preferences
from config import settings
from models.filters import FilterState
from models.internship import Internship
from models.requests import ChatRequest, MatchRequest, SearchHistoryRequest, SuggestionsRequest
from models.responses import (
    ChatResponse,
    Facets,
    MatchCommentary,
    QueueStats,
    RecentlyViewedItem,
    SearchResponse,
    SuggestionsResponse,
)
from services import assistant, filter_engine, preferences_store
from services.ai_queue import AIQueue
from services.listing_store import ListingSourceError, ListingStore
from services.preferences_store import JsonKeyValueStore

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

AI_UNAVAILABLE = "Sorry, couldn't get a response from the assistant. Please try again later."


def _catalogue(store: ListingStore) -> list[Internship]:
    try:
        return store.all()
    except ListingSourceError as e:
        logger.error("Listing catalogue unavailable: %s", e)
        raise HTTPException(status_code=502, detail="Internship listings are unavailable")


def _get_listing(store: ListingStore, internship_id: str) -> Internship:
    _catalogue(store)
    listing = store.get(internship_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Internship not found")
    return listing


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "gemini_configured": bool(settings.gemini_api_key),
    }


# --- Internships ---


@router.post("/internships/search", response_model=SearchResponse)
async def search_internships(
    filters: FilterState,
    store: ListingStore = Depends(get_listing_store),
    prefs: JsonKeyValueStore = Depends(get_preferences),
):
    listings = _catalogue(store)
    results = filter_engine.filter_listings(listings, filters)

    preferences_store.save_filters(prefs, filters)
    if filters.search.strip():
        preferences_store.add_search(prefs, filters.search)

    return SearchResponse(
        total=len(results),
        results=results,
        facets=filter_engine.extract_facets(listings),
    )


@router.get("/internships/facets", response_model=Facets)
async def internship_facets(store: ListingStore = Depends(get_listing_store)):
    return filter_engine.extract_facets(_catalogue(store))


@router.get("/internships/{internship_id}", response_model=Internship)
async def get_internship(
    internship_id: str,
    store: ListingStore = Depends(get_listing_store),
    prefs: JsonKeyValueStore = Depends(get_preferences),
):
    listing = _get_listing(store, internship_id)
    preferences_store.add_recently_viewed(prefs, listing)
    return listing


# --- Preferences ---


@router.get("/preferences/filters", response_model=FilterState)
async def get_saved_filters(prefs: JsonKeyValueStore = Depends(get_preferences)):
    return preferences_store.load_filters(prefs) or FilterState()


@router.delete("/preferences/filters", status_code=204)
async def delete_saved_filters(prefs: JsonKeyValueStore = Depends(get_preferences)):
    preferences_store.clear_filters(prefs)


@router.get("/preferences/history", response_model=list[str])
async def get_history(prefs: JsonKeyValueStore = Depends(get_preferences)):
    return preferences_store.get_search_history(prefs)


@router.post("/preferences/history", response_model=list[str])
async def add_history(body: SearchHistoryRequest, prefs: JsonKeyValueStore = Depends(get_preferences)):
    return preferences_store.add_search(prefs, body.query)


@router.delete("/preferences/history", status_code=204)
async def delete_history(query: str | None = None, prefs: JsonKeyValueStore = Depends(get_preferences)):
    if query is None:
        preferences_store.clear_search_history(prefs)
    else:
        preferences_store.remove_search(prefs, query)


@router.get("/preferences/recently-viewed", response_model=list[RecentlyViewedItem])
async def get_recently_viewed(prefs: JsonKeyValueStore = Depends(get_preferences)):
    return preferences_store.get_recently_viewed(prefs)


# --- Assistant ---


@router.post("/assistant/chat", response_model=ChatResponse)
@limiter.limit("10/minute")
async def chat(request: Request, body: ChatRequest, queue: AIQueue = Depends(get_ai_queue)):
    try:
        response = await assistant.ask(queue, body.message, body.context)
    except Exception as e:
        logger.error("Assistant chat failed: %s", e)
        raise HTTPException(status_code=503, detail=AI_UNAVAILABLE)
    suggestions = await assistant.suggest_followups(queue, body.message)
    return ChatResponse(response=response, suggestions=suggestions)


@router.post("/assistant/suggestions", response_model=SuggestionsResponse)
@limiter.limit("10/minute")
async def suggestions(request: Request, body: SuggestionsRequest, queue: AIQueue = Depends(get_ai_queue)):
    if body.partial:
        items = await assistant.autosuggest(queue, body.message)
    else:
        items = await assistant.suggest_followups(queue, body.message)
    return SuggestionsResponse(suggestions=items)


@router.post("/assistant/match/{internship_id}", response_model=MatchCommentary)
@limiter.limit("10/minute")
async def match_commentary(
    request: Request,
    internship_id: str,
    body: MatchRequest,
    queue: AIQueue = Depends(get_ai_queue),
    store: ListingStore = Depends(get_listing_store),
):
    listing = _get_listing(store, internship_id)
    try:
        commentary = await assistant.explain_match(queue, listing, body.profile)
    except Exception as e:
        logger.error("Match commentary failed for %s: %s", internship_id, e)
        raise HTTPException(status_code=503, detail=AI_UNAVAILABLE)
    return MatchCommentary(internship_id=internship_id, commentary=commentary)


@router.get("/assistant/queue", response_model=QueueStats)
async def queue_stats(queue: AIQueue = Depends(get_ai_queue)):
    return queue.stats()
