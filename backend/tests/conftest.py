"""Shared test configuration and fixtures."""

import asyncio

import pytest

from models.internship import Internship


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: calls the real Gemini API (needs GEMINI_API_KEY)"
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and only yields."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class StubUpstream:
    """Upstream generate() double: replies or raises from a script."""

    def __init__(self, outcomes=None, default="ok"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.calls.append(prompt)
        await asyncio.sleep(0)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        else:
            outcome = self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(prompt)
        return outcome


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


SAMPLE_RECORDS = [
    {
        "id": "1",
        "title": "Frontend Intern",
        "company": "TechStart",
        "location": "Bangalore",
        "stipend": "₹20000",
        "sector_tags": ["Technology"],
        "required_skills": ["React", "JavaScript"],
        "preferred_education_levels": ["Undergraduate"],
        "work_mode": "hybrid",
        "posted_date": "2026-09-01",
        "application_deadline": "2026-11-01",
    },
    {
        "id": "2",
        "title": "Finance Analyst",
        "company": "FinanceFirst",
        "location": "Mumbai",
        "stipend": "₹15000",
        "sector_tags": ["Finance"],
        "required_skills": ["Excel"],
        "work_mode": "on-site",
        "posted_date": "2026-10-01",
    },
    {
        "id": "3",
        "title": "ML Research Intern",
        "company": "DataMinds",
        "location": {"city": "Hyderabad", "state": "Telangana"},
        "stipend": "₹35,000-₹45,000/month",
        "sector_tags": ["AI/ML", "Technology"],
        "required_skills": ["Python", "PyTorch"],
        "preferred_education_levels": ["Postgraduate"],
        "work_mode": "remote",
        "posted_date": "2026-09-15",
        "application_deadline": "2026-10-20",
    },
    {
        "id": "4",
        "title": "Design Intern",
        "company": "designhub",
        "location": "Multiple Cities",
        "stipend": "Unpaid",
        "sector_tags": ["Designing"],
        "required_skills": ["Figma"],
        "work_mode": "remote",
    },
]


@pytest.fixture
def sample_listings() -> list[Internship]:
    return [Internship.model_validate(record) for record in SAMPLE_RECORDS]


@pytest.fixture
def upstream_factory():
    return StubUpstream
