"""All prompt templates for Gemini API calls."""

from typing import Any

from services.filter_engine import location_text

ASSISTANT_NAME = "Saksham AI"


def build_career_prompt(message: str, context: str = "") -> str:
    """Career assistant answer for a free-form user question."""
    context_section = ""
    if context.strip():
        context_section = f"""
CONTEXT FROM THE CURRENT PAGE OR PROFILE:
---
{context.strip()}
---
"""

    return f"""You are {ASSISTANT_NAME}, the career assistant for an internship discovery platform for students in India.

PLATFORM FEATURES YOU CAN REFERENCE:
- Search and filters by sector, location, skills, work mode and minimum stipend [Search](/)
- AI match commentary on individual internships
- Profile with skills, education and preferences [Profile](/profile)
- Application tracking [Applications](/applications)
- Wishlist and side-by-side comparison [Wishlist](/wishlist)
{context_section}
User question: {message}

Give practical, specific advice about finding internships, applications or career growth.
Use short bullet points. When you mention a platform feature, include it as a markdown link like [Feature Name](/url).

Response:"""


def build_suggestions_prompt(message: str) -> str:
    """Follow-up questions after an assistant exchange."""
    return (
        f'Based on the user\'s message: "{message}", generate 3 relevant follow-up '
        "questions that are within the scope of an AI career assistant for an "
        "internship platform. The questions should be short and concise, and "
        "formatted as a numbered list."
    )


def build_autosuggest_prompt(query: str) -> str:
    """Completions for a partially typed assistant query."""
    return (
        f'Based on the user\'s partial query: "{query}", generate 3 short, relevant '
        "questions that an AI career assistant for an internship platform could "
        "answer. The questions should be formatted as a numbered list."
    )


def _join(items: list[str] | None) -> str:
    return ", ".join(items) if items else "not specified"


def build_match_prompt(internship: Any, profile: Any) -> str:
    """Commentary on how well one internship fits a student profile."""
    return f"""You are {ASSISTANT_NAME}, reviewing how well an internship fits a student.

INTERNSHIP:
- Title: {internship.title}
- Company: {internship.company}
- Location: {location_text(internship) or "not specified"}
- Work mode: {internship.work_mode or "not specified"}
- Stipend: {internship.stipend or "not specified"}
- Duration: {internship.duration or "not specified"}
- Sectors: {_join(internship.sector_tags)}
- Required skills: {_join(internship.required_skills)}

STUDENT PROFILE:
- Skills: {_join(profile.skills)}
- Preferred sectors: {_join(profile.preferred_sectors)}
- Preferred locations: {_join(profile.preferred_locations)}
- Education: {profile.education or "not specified"}
- Minimum stipend: {profile.min_stipend if profile.min_stipend is not None else "not specified"}

In 3-5 bullet points, explain the strongest reasons this is or is not a good match,
name any missing skills worth learning first, and end with one concrete next step."""
