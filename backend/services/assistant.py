"""Career assistant features built on the AI request queue."""

import logging
import re

from models.internship import Internship
from models.requests import StudentProfile
from services import prompt_builder
from services.ai_queue import AIQueue

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

_NUMBERING_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")

# Keyword -> canned completions used when the model is unavailable
_LOCAL_AUTOSUGGESTIONS: list[tuple[str, list[str]]] = [
    ("intern", ["How to find internships?", "Best internship websites", "Internship application tips"]),
    ("resume", ["Resume writing tips", "Resume templates", "Resume review checklist"]),
    ("interview", ["Interview preparation", "Common interview questions", "Interview follow-up"]),
    ("skill", ["Skill development", "In-demand skills", "Online learning platforms"]),
]
_DEFAULT_AUTOSUGGESTIONS = ["Career guidance", "Job search tips", "Professional development"]


def parse_numbered_list(text: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
    """Turn "1. foo\\n2. bar" style model output into ["foo", "bar"]."""
    items = []
    for line in text.splitlines():
        cleaned = _NUMBERING_RE.sub("", line).strip()
        if cleaned:
            items.append(cleaned)
    return items[:limit]


def local_autosuggestions(query: str) -> list[str]:
    lowered = query.lower()
    for keyword, suggestions in _LOCAL_AUTOSUGGESTIONS:
        if keyword in lowered:
            return list(suggestions)
    return list(_DEFAULT_AUTOSUGGESTIONS)


async def ask(queue: AIQueue, message: str, context: str = "") -> str:
    """Answer a user question. Errors propagate to the caller."""
    prompt = prompt_builder.build_career_prompt(message, context)
    return await queue.generate_response(prompt)


async def suggest_followups(queue: AIQueue, message: str) -> list[str]:
    """Follow-up questions for a message; empty when the model is unavailable."""
    try:
        text = await queue.generate_response(prompt_builder.build_suggestions_prompt(message))
    except Exception as e:
        logger.warning("Follow-up suggestions unavailable: %s", e)
        return []
    return parse_numbered_list(text)


async def autosuggest(queue: AIQueue, query: str) -> list[str]:
    """Completions for a partial query, falling back to local suggestions."""
    if not query.strip():
        return []
    try:
        text = await queue.generate_response(prompt_builder.build_autosuggest_prompt(query))
    except Exception as e:
        logger.warning("Autosuggest via Gemini failed, using local fallback: %s", e)
        return local_autosuggestions(query)
    return parse_numbered_list(text) or local_autosuggestions(query)


async def explain_match(queue: AIQueue, internship: Internship, profile: StudentProfile) -> str:
    """Commentary on how an internship fits a profile. Errors propagate."""
    return await queue.generate_response(prompt_builder.build_match_prompt(internship, profile))
