"""Internship listing records as served by the catalogue."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class WorkMode(str, Enum):
    REMOTE = "remote"
    ON_SITE = "on-site"
    HYBRID = "hybrid"


# Spellings seen in catalogue sources and recruiter forms
_WORK_MODE_ALIASES = {
    "remote": WorkMode.REMOTE,
    "wfh": WorkMode.REMOTE,
    "work from home": WorkMode.REMOTE,
    "on-site": WorkMode.ON_SITE,
    "onsite": WorkMode.ON_SITE,
    "on site": WorkMode.ON_SITE,
    "in-office": WorkMode.ON_SITE,
    "hybrid": WorkMode.HYBRID,
}


def normalize_work_mode(value: Any) -> Any:
    """Canonical work mode string ("Onsite" -> "on-site").

    Unknown strings are returned stripped but otherwise unchanged; non-strings
    pass through untouched.
    """
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return value
    cleaned = value.strip()
    mode = _WORK_MODE_ALIASES.get(cleaned.lower().replace("_", "-"))
    return mode.value if mode else cleaned


class Location(BaseModel):
    """Structured location used by some catalogue sources."""
    city: str = ""
    state: str = ""
    lat: float | None = None
    lng: float | None = None


class Internship(BaseModel):
    """A single internship listing.

    Catalogue sources are inconsistent, so every field is optional and
    loosely typed: a record missing a field simply fails to match filters on
    that field. ``title`` falls back to ``role`` when absent. Unknown fields
    are ignored.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    title: str = ""
    role: str | None = None
    company: str = ""
    location: str | Location | None = None
    stipend: str | None = None
    duration: str | None = None
    sector_tags: list[str] = []
    required_skills: list[str] = []
    preferred_education_levels: list[str] = []
    work_mode: str | None = None
    posted_date: str | None = None
    application_deadline: str | None = None
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _title_from_role(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("title") and isinstance(data.get("role"), str):
            data = {**data, "title": data["role"]}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("title", "company", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("stipend", mode="before")
    @classmethod
    def _stipend_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("sector_tags", "required_skills", "preferred_education_levels", mode="before")
    @classmethod
    def _string_items(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple, set)):
            return []
        return [item for item in value if isinstance(item, str)]

    @field_validator("location", mode="before")
    @classmethod
    def _location_shape(cls, value: Any) -> Any:
        return value if isinstance(value, (str, dict, Location)) else None

    @field_validator("work_mode", mode="before")
    @classmethod
    def _normalize_work_mode(cls, value: Any) -> Any:
        value = normalize_work_mode(value)
        return value if isinstance(value, str) and value else None
