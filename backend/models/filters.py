"""Filter selections for the internship list."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

# Sentinel for "no selection" on single-choice filter dimensions
ALL = "all"


class SortKey(str, Enum):
    RECENT = "recent"
    AI_RECOMMENDED = "ai-recommended"
    RELEVANCE = "relevance"
    STIPEND_HIGH = "stipend-high"
    STIPEND_LOW = "stipend-low"
    COMPANY = "company"
    DEADLINE = "deadline"


class FilterState(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    search: str = ""
    sector: str = ALL
    selected_sectors: list[str] = []
    location: str = ALL
    work_mode: str = ALL
    education: str = ALL
    min_stipend: str = ALL
    selected_skills: list[str] = []
    sort_by: SortKey = SortKey.RECENT
