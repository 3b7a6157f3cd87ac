"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from jobmatch.ai_scorer import AIScore, AIScorer
from jobmatch.errors import AIScoringError
from jobmatch.models import JobPosting, Tier, UserPreferences
from jobmatch.normalize import compute_job_hash

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def build_posting(
    title: str = "Finance Analyst",
    company: str = "Acme Capital",
    city: Optional[str] = "berlin",
    categories=("finance-investment", "early-career"),
    source: str = "linkedin",
    days_old: float = 1,
    **overrides,
) -> JobPosting:
    location = overrides.pop("location", city or "remote")
    job_hash = overrides.pop("job_hash", None) or compute_job_hash(title, company, location)
    fields = dict(
        job_hash=job_hash,
        title=title,
        company=company,
        city=city,
        location=location,
        categories=frozenset(categories),
        source=source,
        posted_at=NOW - timedelta(days=days_old),
        experience_level="entry-level",
    )
    fields.update(overrides)
    return JobPosting(**fields)


def build_postings(count: int, prefix: str = "Company", **kwargs) -> List[JobPosting]:
    """Distinct postings sharing every attribute except company and age."""
    start = kwargs.pop("days_old", 1)
    return [
        build_posting(company=f"{prefix} {i}", days_old=start + i * 0.01, **kwargs)
        for i in range(count)
    ]


def build_user(
    email: str = "ana@example.com",
    target_cities=("Berlin",),
    career_paths=("finance",),
    tier: Tier = Tier.FREE,
    **overrides,
) -> UserPreferences:
    return UserPreferences(
        email=email,
        target_cities=tuple(target_cities),
        career_paths=tuple(career_paths),
        tier=tier,
        **overrides,
    )


class FakeAIScorer(AIScorer):
    """Scores every posting with a fixed value, or fails on demand."""

    def __init__(self, score: float = 90.0, scores: Optional[Dict[str, float]] = None, fail: bool = False):
        self.default = score
        self.scores = scores or {}
        self.fail = fail
        self.calls: List[List[str]] = []

    def score(self, user, postings):
        self.calls.append([p.job_hash for p in postings])
        if self.fail:
            raise AIScoringError("AI scoring timed out")
        return {
            p.job_hash: AIScore(score=self.scores.get(p.job_hash, self.default), reason=f"AI: {p.title}")
            for p in postings
        }


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def posting_factory():
    return build_posting


@pytest.fixture
def user_factory():
    return build_user


@pytest.fixture
def free_user() -> UserPreferences:
    """Free user targeting Berlin and Madrid in finance."""
    return build_user(target_cities=("Berlin", "Madrid"), career_paths=("finance",))


@pytest.fixture
def premium_user() -> UserPreferences:
    """Premium user with skills, industries and two career paths."""
    return build_user(
        email="lena@example.com",
        target_cities=("London",),
        career_paths=("finance", "data"),
        tier=Tier.PREMIUM,
        skills=("Excel", "Financial Modelling"),
        industries=("fintech",),
        work_environment="hybrid",
        visa_status="requires sponsorship",
    )


@pytest.fixture
def valid_user_record() -> Dict[str, Any]:
    return {
        "email": "Ana@Example.com",
        "target_cities": ["Berlin", "Madrid"],
        "career_paths": ["finance"],
        "tier": "free",
        "work_environment": "hybrid",
    }


@pytest.fixture
def valid_posting_record() -> Dict[str, Any]:
    return {
        "title": "Graduate Finance Analyst",
        "company": "Acme Capital",
        "city": "Berlin",
        "location": "Berlin, Germany",
        "categories": ["finance-investment", "early-career"],
        "source": "LinkedIn",
        "posted_at": "2026-01-14T09:00:00Z",
        "work_environment": "Hybrid",
        "experience_level": "entry-level",
        "visa_friendly": True,
    }


@pytest.fixture
def users_file(tmp_path, valid_user_record) -> Path:
    path = tmp_path / "users.json"
    path.write_text(json.dumps([valid_user_record, {"email": "broken"}]))
    return path


@pytest.fixture
def jobs_file(tmp_path, valid_posting_record) -> Path:
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps([valid_posting_record]))
    return path
