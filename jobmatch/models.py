"""Typed records flowing through the matching pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import FrozenSet, Optional, Tuple

from .normalize import normalize_text


class Tier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class Provenance(str, Enum):
    RULES = "rules"
    AI = "ai"
    HYBRID = "hybrid"
    FALLBACK = "fallback"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WorkEnvironment(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ON_SITE = "on-site"
    UNCLEAR = "unclear"


class RecoveryLevel(IntEnum):
    PRIMARY = 0
    RELAXED_FILTERING = 1
    CITY_EXPANSION = 2
    SKILL_RELAXATION = 3
    INDUSTRY_BROADENING = 4
    FINAL_FALLBACK = 5


NO_SPONSORSHIP_NEEDED = {
    "eu citizen", "eu-citizen", "citizen", "permanent resident",
    "not required", "none", "no", "n/a",
}


@dataclass(frozen=True)
class UserPreferences:
    email: str
    target_cities: Tuple[str, ...]
    career_paths: Tuple[str, ...] = ()
    entry_level_preference: str = "entry-level"
    work_environment: Optional[str] = None
    # Several accepted environments; the premium selector balances across them
    work_environments: Tuple[str, ...] = ()
    visa_status: Optional[str] = None
    tier: Tier = Tier.FREE
    skills: Tuple[str, ...] = ()
    industries: Tuple[str, ...] = ()
    company_size: Optional[str] = None
    career_keywords: Optional[str] = None
    languages: Tuple[str, ...] = ()

    @property
    def is_premium(self) -> bool:
        return self.tier == Tier.PREMIUM

    # Free records may carry stale premium fields; the pipeline only reads these.
    @property
    def effective_skills(self) -> Tuple[str, ...]:
        return self.skills if self.is_premium else ()

    @property
    def effective_industries(self) -> Tuple[str, ...]:
        return self.industries if self.is_premium else ()

    @property
    def effective_company_size(self) -> Optional[str]:
        return self.company_size if self.is_premium else None

    @property
    def effective_languages(self) -> Tuple[str, ...]:
        return self.languages if self.is_premium else ()

    @property
    def effective_career_keywords(self) -> Tuple[str, ...]:
        """Comma-separated career_keywords, split and normalized."""
        if not self.is_premium or not self.career_keywords:
            return ()
        return tuple(k for k in (normalize_text(p) for p in self.career_keywords.split(",")) if k)

    @property
    def accepted_work_environments(self) -> FrozenSet[str]:
        """Declared environments (single and list), without "unclear"."""
        envs = (normalize_text(e) for e in (self.work_environment,) + tuple(self.work_environments))
        return frozenset(e for e in envs if e and e != WorkEnvironment.UNCLEAR.value)

    @property
    def needs_visa_sponsorship(self) -> bool:
        v = normalize_text(self.visa_status)
        if not v or v in NO_SPONSORSHIP_NEEDED:
            return False
        if "not required" in v or "no sponsorship" in v:
            return False
        return "sponsor" in v or "visa" in v or "non-eu" in v


@dataclass(frozen=True)
class JobPosting:
    job_hash: str
    title: str
    company: str
    city: Optional[str] = None
    location: str = ""
    categories: FrozenSet[str] = frozenset()
    source: str = "unknown"
    posted_at: Optional[datetime] = None
    work_environment: str = WorkEnvironment.UNCLEAR.value
    visa_friendly: Optional[bool] = None
    description: str = ""
    experience_level: Optional[str] = None
    # Spoken languages the posting explicitly requires
    language_requirements: FrozenSet[str] = frozenset()

    @property
    def searchable_text(self) -> str:
        return normalize_text(f"{self.title} {self.description}")


@dataclass
class MatchCandidate:
    """A posting under consideration for one user; never persisted as-is."""

    posting: JobPosting
    relevance_ratio: float = 0.0
    completeness_score: float = 0.0
    recency_score: float = 0.0
    heuristic_score: float = 0.0
    ai_score: Optional[float] = None
    score: float = 0.0
    provenance: Provenance = Provenance.RULES
    reason: str = ""
    recovery_level: RecoveryLevel = RecoveryLevel.PRIMARY
    confidence: Confidence = Confidence.HIGH
    notes: list = field(default_factory=list)

    @property
    def job_hash(self) -> str:
        return self.posting.job_hash

    @property
    def normalized_score(self) -> float:
        """Score mapped from [0, 100] onto [0, 1] for persistence."""
        return round(min(max(self.score, 0.0), 100.0) / 100.0, 4)
