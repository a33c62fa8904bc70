from pydantic import BaseModel

from models.internship import Internship


class Facets(BaseModel):
    sectors: list[str] = []
    locations: list[str] = []


class SearchResponse(BaseModel):
    total: int = 0
    results: list[Internship] = []
    facets: Facets = Facets()


class ChatResponse(BaseModel):
    response: str
    suggestions: list[str] = []


class SuggestionsResponse(BaseModel):
    suggestions: list[str] = []


class MatchCommentary(BaseModel):
    internship_id: str
    commentary: str


class QueueStats(BaseModel):
    queue_size: int = 0
    processing: bool = False
    cache_entries: int = 0
    upstream_calls: int = 0
    cache_hits: int = 0


class RecentlyViewedItem(BaseModel):
    id: str
    title: str
    company: str
    viewed_at: str
