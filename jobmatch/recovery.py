"""
Recovery orchestrator.

Runs Pre-Filter -> Scorer -> Selector as a finite ladder of levels, each
relaxing constraints further than the last:

    L0 Primary              tier policy, AI allowed       confidence=high
    L1 Relaxed filtering    city only, no cutoff          confidence=medium
    L2 City expansion       L1 + metro-area aliases       confidence=medium
    L3 Skill relaxation     any city, partial skills      confidence=low   (premium)
    L4 Industry broadening  any city, industry synonyms   confidence=low   (premium)
    L5 Final fallback       most recent postings          confidence=low

The ladder is walked once, top to bottom. It stops at the first level
whose selection reaches the profile's minimum, or at L5 unconditionally.
An exception inside a level counts as an insufficient result for that
level.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .ai_scorer import AIScorer
from .config import MatchingConfig
from .distribution import DistributionConfig, select_diverse
from .logger import get_logger
from .models import Confidence, JobPosting, MatchCandidate, Provenance, RecoveryLevel, UserPreferences
from .prefilter import CITY_ONLY, PARTIAL, FilterPolicy, prefilter
from .scoring import score_candidates, score_posting
from .tiers import TierProfile

logger = get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LevelPlan:
    level: RecoveryLevel
    name: str
    confidence: Confidence
    policy: Optional[FilterPolicy]  # None = no filtering (final fallback)
    apply_cutoff: bool = False
    use_ai: bool = False
    premium_only: bool = False
    balance_cities: bool = True
    city_aliases: bool = False


def build_ladder(profile: TierProfile) -> List[LevelPlan]:
    """Levels for one tier profile, in escalation order."""
    return [
        LevelPlan(
            RecoveryLevel.PRIMARY, "primary", Confidence.HIGH, profile.policy,
            apply_cutoff=True, use_ai=True,
        ),
        LevelPlan(RecoveryLevel.RELAXED_FILTERING, "relaxed_filtering", Confidence.MEDIUM, CITY_ONLY),
        LevelPlan(
            RecoveryLevel.CITY_EXPANSION, "city_expansion", Confidence.MEDIUM,
            FilterPolicy(use_category=False, expand_cities=True),
            city_aliases=True,
        ),
        LevelPlan(
            RecoveryLevel.SKILL_RELAXATION, "skill_relaxation", Confidence.LOW,
            FilterPolicy(use_city=False, use_skills=True, skill_match=PARTIAL),
            premium_only=True, balance_cities=False,
        ),
        LevelPlan(
            RecoveryLevel.INDUSTRY_BROADENING, "industry_broadening", Confidence.LOW,
            FilterPolicy(
                use_city=False,
                use_category=False,
                use_skills=True,
                use_industries=True,
                skill_match=PARTIAL,
                broaden_industries=True,
                skills_or_industries=True,
            ),
            premium_only=True, balance_cities=False,
        ),
        LevelPlan(RecoveryLevel.FINAL_FALLBACK, "final_fallback", Confidence.LOW, None, balance_cities=False),
    ]


@dataclass
class LevelTrace:
    level: RecoveryLevel
    name: str
    filtered: int = 0
    scored: int = 0
    selected: int = 0
    elapsed_ms: float = 0.0
    provenance: Optional[Provenance] = None
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class RecoveryOutcome:
    level: RecoveryLevel
    confidence: Confidence
    provenance: Provenance
    candidates: List[MatchCandidate] = field(default_factory=list)
    trace: List[LevelTrace] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def is_fallback(self) -> bool:
        return self.level == RecoveryLevel.FINAL_FALLBACK

    @property
    def exhausted(self) -> bool:
        return self.is_fallback and not self.candidates


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RecoveryOrchestrator:
    """Walks the recovery ladder for one user."""

    def __init__(
        self,
        config: Optional[MatchingConfig] = None,
        ai_scorer: Optional[AIScorer] = None,
        now: Optional[datetime] = None,
    ):
        self.config = config or MatchingConfig()
        self.ai_scorer = ai_scorer
        self.now = now

    def run(
        self,
        user: UserPreferences,
        pool: Sequence[JobPosting],
        profile: TierProfile,
        ai_scorer: Optional[AIScorer] = None,
    ) -> RecoveryOutcome:
        """
        Produce a result set for one user, escalating until it is sufficient.

        Args:
            user: User preferences
            pool: Full posting pool for the run
            profile: Tier profile (target count, minimum, AI window)
            ai_scorer: Overrides the orchestrator's scorer for this call
                (segment-shared scorer in batch mode)

        Returns:
            RecoveryOutcome for the terminal level
        """
        scorer = ai_scorer if ai_scorer is not None else self.ai_scorer
        now = self.now or datetime.now(timezone.utc)
        started = time.perf_counter()
        trace: List[LevelTrace] = []
        minimum = max(profile.min_results, 1)

        ladder = build_ladder(profile)
        final = ladder[-1]
        for plan in ladder[:-1]:
            step = LevelTrace(level=plan.level, name=plan.name)
            trace.append(step)

            if plan.premium_only and not profile.allows_premium_levels:
                step.skipped = True
                continue

            selected = self._attempt(plan, user, pool, profile, scorer, now, step)
            if len(selected) >= minimum:
                return self._finish(plan, step, selected, trace, user, minimum, started)

            logger.info(
                "Recovery escalation",
                level=int(plan.level),
                name=plan.name,
                user=user.email,
                selected=len(selected),
                minimum=minimum,
                elapsed_ms=_elapsed_ms(started),
            )

        step = LevelTrace(level=final.level, name=final.name)
        trace.append(step)
        selected = self._attempt(final, user, pool, profile, scorer, now, step)
        return self._finish(final, step, selected, trace, user, minimum, started)

    def _attempt(
        self,
        plan: LevelPlan,
        user: UserPreferences,
        pool: Sequence[JobPosting],
        profile: TierProfile,
        scorer: Optional[AIScorer],
        now: datetime,
        step: LevelTrace,
    ) -> List[MatchCandidate]:
        """Run one level; an exception counts as an empty selection."""
        level_started = time.perf_counter()
        try:
            if plan.policy is None:
                selected = self._final_fallback(user, pool, profile, now, step)
            else:
                selected = self._run_level(plan, user, pool, profile, scorer, now, step)
        except Exception as e:
            logger.warning(
                "Recovery level failed",
                level=int(plan.level),
                name=plan.name,
                user=user.email,
                error=f"{type(e).__name__}: {e}",
            )
            step.error = f"{type(e).__name__}: {e}"
            selected = []
        step.selected = len(selected)
        step.elapsed_ms = _elapsed_ms(level_started)
        return selected

    def _finish(
        self,
        plan: LevelPlan,
        step: LevelTrace,
        selected: List[MatchCandidate],
        trace: List[LevelTrace],
        user: UserPreferences,
        minimum: int,
        started: float,
    ) -> RecoveryOutcome:
        outcome = RecoveryOutcome(
            level=plan.level,
            confidence=plan.confidence,
            provenance=step.provenance or Provenance.FALLBACK,
            candidates=selected,
            trace=trace,
            elapsed_ms=_elapsed_ms(started),
        )
        self._report(user, outcome, minimum)
        return outcome

    def _run_level(
        self,
        plan: LevelPlan,
        user: UserPreferences,
        pool: Sequence[JobPosting],
        profile: TierProfile,
        scorer: Optional[AIScorer],
        now: datetime,
        step: LevelTrace,
    ) -> List[MatchCandidate]:
        filtered = prefilter(user, pool, plan.policy)
        step.filtered = len(filtered)

        result = score_candidates(
            user,
            filtered,
            config=self.config,
            ai_scorer=scorer if plan.use_ai else None,
            ai_window=profile.ai_window,
            apply_cutoff=plan.apply_cutoff,
            level=plan.level,
            confidence=plan.confidence,
            now=now,
        )
        step.scored = len(result.candidates)
        step.provenance = result.provenance

        envs = tuple(user.work_environments) if profile.balance_work_environments else ()
        dist = DistributionConfig(
            target_count=profile.target_count,
            max_source_fraction=self.config.max_source_fraction,
            target_cities=tuple(user.target_cities),
            balance_cities=plan.balance_cities,
            target_work_environments=envs,
            balance_work_environments=len(envs) > 1,
            city_aliases=plan.city_aliases,
            source_swap_min_pool=self.config.source_swap_min_pool,
            source_swap_penalty=self.config.source_swap_penalty,
        )
        return select_diverse(result.candidates, dist)

    def _final_fallback(
        self,
        user: UserPreferences,
        pool: Sequence[JobPosting],
        profile: TierProfile,
        now: datetime,
        step: LevelTrace,
    ) -> List[MatchCandidate]:
        step.filtered = len(pool)
        recent = sorted(pool, key=lambda p: (-(p.posted_at or _EPOCH).timestamp(), p.job_hash))
        selected: List[MatchCandidate] = []
        for posting in recent[:profile.target_count]:
            c = score_posting(posting, user, self.config, now)
            c.provenance = Provenance.FALLBACK
            c.recovery_level = RecoveryLevel.FINAL_FALLBACK
            c.confidence = Confidence.LOW
            c.reason = f"Recent opening (limited matches for your preferences): {c.reason}"
            selected.append(c)
        step.scored = len(selected)
        step.provenance = Provenance.FALLBACK
        return selected

    def _report(self, user: UserPreferences, outcome: RecoveryOutcome, minimum: int):
        logger.record_recovery_level(int(outcome.level))
        if outcome.exhausted:
            logger.record_supply_exhausted()
            logger.error(
                "Supply exhausted",
                user=user.email,
                levels_tried=len(outcome.trace),
                elapsed_ms=outcome.elapsed_ms,
            )
        elif outcome.is_fallback:
            logger.record_supply_shortfall()
            logger.warning(
                "Supply shortfall",
                user=user.email,
                level=int(outcome.level),
                results=len(outcome.candidates),
                minimum=minimum,
                elapsed_ms=outcome.elapsed_ms,
            )
        else:
            logger.info(
                "Recovery complete",
                user=user.email,
                level=int(outcome.level),
                confidence=outcome.confidence.value,
                results=len(outcome.candidates),
                elapsed_ms=outcome.elapsed_ms,
            )
