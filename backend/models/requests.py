from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000, description="User question")
    context: str = Field("", max_length=10000, description="Optional page or profile context")


class SuggestionsRequest(BaseModel):
    message: str = Field(..., max_length=4000, description="Message or partial query")
    partial: bool = Field(False, description="Treat message as a partial search query")


class StudentProfile(BaseModel):
    skills: list[str] = []
    preferred_sectors: list[str] = []
    preferred_locations: list[str] = []
    education: str = ""
    min_stipend: int | None = None


class MatchRequest(BaseModel):
    profile: StudentProfile = StudentProfile()


class SearchHistoryRequest(BaseModel):
    query: str = Field(..., max_length=200)
