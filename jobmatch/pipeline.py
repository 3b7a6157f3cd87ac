"""
Per-user matching pipeline.

One parameterized pipeline serves every tier: the user's TierProfile is
resolved, the recovery orchestrator produces the result set, and a
session summary is logged for analytics.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .ai_scorer import AIScorer
from .config import MatchingConfig
from .logger import get_logger
from .models import Confidence, JobPosting, MatchCandidate, Provenance, RecoveryLevel, UserPreferences
from .recovery import RecoveryOrchestrator, RecoveryOutcome
from .tiers import profile_for

logger = get_logger()


class UserStatus(str, Enum):
    MATCHED = "matched"
    NO_MATCHES = "no_matches"
    PERSISTENCE_ERROR = "persistence_error"
    FAILED = "failed"


@dataclass
class UserOutcome:
    email: str
    status: UserStatus
    matches: List[MatchCandidate] = field(default_factory=list)
    level: Optional[RecoveryLevel] = None
    confidence: Optional[Confidence] = None
    provenance: Optional[Provenance] = None
    stage_counts: Dict[str, int] = field(default_factory=dict)
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    def summary(self) -> Dict[str, object]:
        return {
            "user": self.email,
            "status": self.status.value,
            "results": len(self.matches),
            "level": int(self.level) if self.level is not None else None,
            "confidence": self.confidence.value if self.confidence else None,
            "provenance": self.provenance.value if self.provenance else None,
            "stage_counts": dict(self.stage_counts),
            "elapsed_ms": self.elapsed_ms,
            "error": self.error,
        }


def stage_counts(pool_size: int, outcome: RecoveryOutcome) -> Dict[str, int]:
    """Candidate counts per stage for the terminal level."""
    terminal = outcome.trace[-1] if outcome.trace else None
    return {
        "pool": pool_size,
        "filtered": terminal.filtered if terminal else 0,
        "scored": terminal.scored if terminal else 0,
        "selected": len(outcome.candidates),
        "levels_tried": sum(1 for t in outcome.trace if not t.skipped),
    }


class MatchingPipeline:
    """Single entry point for matching one user against a posting pool."""

    def __init__(
        self,
        config: Optional[MatchingConfig] = None,
        ai_scorer: Optional[AIScorer] = None,
        now: Optional[datetime] = None,
    ):
        self.config = config or MatchingConfig()
        self.orchestrator = RecoveryOrchestrator(self.config, ai_scorer=ai_scorer, now=now)

    def match_user(
        self,
        user: UserPreferences,
        pool: Sequence[JobPosting],
        ai_scorer: Optional[AIScorer] = None,
    ) -> UserOutcome:
        """
        Run the full pipeline for one user.

        Args:
            user: User preferences
            pool: Posting pool for this run
            ai_scorer: Optional scorer overriding the pipeline default

        Returns:
            UserOutcome; status is NO_MATCHES when even the final fallback
            produced nothing
        """
        started = time.perf_counter()
        profile = profile_for(user, self.config)
        outcome = self.orchestrator.run(user, pool, profile, ai_scorer=ai_scorer)

        result = UserOutcome(
            email=user.email,
            status=UserStatus.MATCHED if outcome.candidates else UserStatus.NO_MATCHES,
            matches=outcome.candidates,
            level=outcome.level,
            confidence=outcome.confidence,
            provenance=outcome.provenance,
            stage_counts=stage_counts(len(pool), outcome),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        logger.record_user_processed()
        if result.status == UserStatus.NO_MATCHES:
            logger.warning("No matches available", user=user.email, tier=profile.tier.value)
        logger.info("Matching session", tier=profile.tier.value, **result.summary())
        return result
