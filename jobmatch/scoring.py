"""
Relevance scorer.

Computes a deterministic 0-100 heuristic score per candidate from
category overlap, categorization completeness and multi-path coverage,
plus capped premium preference boosts, then optionally blends in an external AI score for the top window.

Invariant:
Given identical inputs and no AI scorer, this module always returns the
same scores and the same order. Ties are broken by recency, then by
job_hash.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Sequence

from .ai_scorer import AIScore, AIScorer
from .categories import career_categories, categories_for_paths, is_recognized_category, map_career_path
from .config import MatchingConfig
from .errors import AIScoringError
from .locations import COMPANY_SIZE_KEYWORDS, language_names
from .logger import get_logger
from .models import Confidence, JobPosting, MatchCandidate, Provenance, RecoveryLevel, UserPreferences
from .normalize import normalize_text

logger = get_logger()

MAX_SCORE = 100.0
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ScoringResult:
    candidates: List[MatchCandidate] = field(default_factory=list)
    provenance: Provenance = Provenance.RULES
    ai_attempted: bool = False
    ai_error: Optional[str] = None
    excluded: int = 0


def relevance_ratio(
    posting: JobPosting,
    user_categories: FrozenSet[str],
    config: MatchingConfig,
) -> float:
    """|job ∩ user| / |job|, over career-path tags only."""
    if not user_categories:
        return 1.0
    tags = career_categories(posting.categories)
    if not tags:
        return config.uncategorized_ratio
    return len(tags & user_categories) / len(tags)


def recency_score(posting: JobPosting, now: datetime, freshness_days: int) -> float:
    if posting.posted_at is None or freshness_days <= 0:
        return 0.0
    posted = posting.posted_at
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=timezone.utc)
    age_days = (now - posted).total_seconds() / 86400
    return round(min(1.0, max(0.0, 1.0 - age_days / freshness_days)), 4)


def multi_path_bonus(posting: JobPosting, user: UserPreferences, config: MatchingConfig) -> float:
    tags = career_categories(posting.categories)
    if not tags or not user.career_paths:
        return 0.0
    covered = sum(1 for path in user.career_paths if not map_career_path(path).isdisjoint(tags))
    if user.is_premium and len(user.career_paths) > 1:
        if covered == len(user.career_paths):
            return config.multi_path_full_bonus
        if covered:
            return config.multi_path_partial_bonus
        return 0.0
    return config.single_path_bonus if covered else 0.0


def premium_bonus(posting: JobPosting, user: UserPreferences, config: MatchingConfig) -> float:
    """Career keyword, spoken language and company size boosts; zero for free users."""
    if not user.is_premium:
        return 0.0
    text = posting.searchable_text
    bonus = 0.0

    keywords = user.effective_career_keywords
    if keywords:
        hits = sum(1 for k in keywords if k in text)
        bonus += min(hits * config.keyword_points, config.keyword_cap)

    if user.effective_languages:
        required = " ".join(normalize_text(r) for r in posting.language_requirements)
        names = frozenset().union(*(language_names(lang) for lang in user.effective_languages))
        if any(name in required or name in text for name in names):
            bonus += config.language_bonus

    size = normalize_text(user.effective_company_size)
    if size in COMPANY_SIZE_KEYWORDS:
        haystack = f"{text} {normalize_text(posting.company)}"
        if any(k in haystack for k in COMPANY_SIZE_KEYWORDS[size]):
            bonus += config.company_size_bonus

    return bonus


def _describe(posting: JobPosting, user_categories: FrozenSet[str], ratio: float) -> str:
    parts = []
    matched = sorted(career_categories(posting.categories) & user_categories)
    if matched:
        parts.append(f"Matches your {', '.join(matched)} path")
    elif not user_categories:
        parts.append("Open to all career paths")
    else:
        parts.append("Related to your career interests")
    if posting.city:
        parts.append(f"in {posting.city.title()}")
    if ratio >= 1.0 and matched:
        parts.append("(focused role)")
    return " ".join(parts)


def score_posting(
    posting: JobPosting,
    user: UserPreferences,
    config: MatchingConfig,
    now: datetime,
    user_categories: Optional[FrozenSet[str]] = None,
) -> MatchCandidate:
    """Heuristic score for a single posting, without any cutoff applied."""
    if user_categories is None:
        user_categories = categories_for_paths(user.career_paths)

    ratio = relevance_ratio(posting, user_categories, config)
    completeness = (
        config.completeness_bonus
        if any(is_recognized_category(t) for t in posting.categories)
        else 0.0
    )
    score = config.category_points * ratio
    score += multi_path_bonus(posting, user, config)
    score += premium_bonus(posting, user, config)
    score += completeness
    score = round(min(score, MAX_SCORE), 2)

    return MatchCandidate(
        posting=posting,
        relevance_ratio=round(ratio, 4),
        completeness_score=completeness,
        recency_score=recency_score(posting, now, config.freshness_days),
        heuristic_score=score,
        score=score,
        provenance=Provenance.RULES,
        reason=_describe(posting, user_categories, ratio),
    )


def rank_key(candidate: MatchCandidate):
    posted = candidate.posting.posted_at or _EPOCH
    return (-candidate.score, -posted.timestamp(), candidate.job_hash)


def rank(candidates: List[MatchCandidate]) -> List[MatchCandidate]:
    """Descending score, ties broken by more recent posted_at."""
    return sorted(candidates, key=rank_key)


def _apply_ai(
    ranked: List[MatchCandidate],
    scores: Dict[str, AIScore],
    config: MatchingConfig,
) -> None:
    provenance = Provenance.AI if config.ai_mode == "replace" else Provenance.HYBRID
    weight = config.ai_blend_weight
    for c in ranked:
        ai = scores.get(c.job_hash)
        if ai is None:
            continue
        c.ai_score = ai.score
        if provenance == Provenance.AI:
            c.score = round(ai.score, 2)
        else:
            c.score = round(weight * ai.score + (1 - weight) * c.heuristic_score, 2)
        c.provenance = provenance
        if ai.reason:
            c.reason = ai.reason


def score_candidates(
    user: UserPreferences,
    postings: Sequence[JobPosting],
    config: Optional[MatchingConfig] = None,
    ai_scorer: Optional[AIScorer] = None,
    ai_window: int = 30,
    apply_cutoff: bool = True,
    level: RecoveryLevel = RecoveryLevel.PRIMARY,
    confidence: Confidence = Confidence.HIGH,
    now: Optional[datetime] = None,
) -> ScoringResult:
    """
    Score and rank pre-filtered postings for one user.

    Args:
        user: User preferences
        postings: Pre-filtered postings
        config: Matching configuration
        ai_scorer: Optional external scorer for the top `ai_window` candidates
        ai_window: Maximum number of candidates sent to the AI scorer
        apply_cutoff: Drop candidates below the relevance cutoff
        level: Recovery level stamped on each candidate
        confidence: Confidence stamped on each candidate
        now: Reference time for recency (default: current UTC time)

    Returns:
        ScoringResult with candidates ranked best-first
    """
    config = config or MatchingConfig()
    now = now or datetime.now(timezone.utc)
    user_categories = categories_for_paths(user.career_paths)

    result = ScoringResult()
    scored: List[MatchCandidate] = []
    for posting in postings:
        candidate = score_posting(posting, user, config, now, user_categories)
        if apply_cutoff and candidate.relevance_ratio < config.relevance_cutoff:
            result.excluded += 1
            continue
        candidate.recovery_level = level
        candidate.confidence = confidence
        scored.append(candidate)

    ranked = rank(scored)

    if ai_scorer is not None and ranked and ai_window > 0:
        result.ai_attempted = True
        window = ranked[:ai_window]
        try:
            scores = ai_scorer.score(user, [c.posting for c in window])
        except AIScoringError as e:
            result.ai_error = str(e)
        except Exception as e:
            logger.error("AI scorer raised unexpectedly", user=user.email, error=str(e))
            result.ai_error = f"{type(e).__name__}: {e}"
        else:
            _apply_ai(window, scores, config)
            ranked = rank(ranked)
            if any(c.provenance != Provenance.RULES for c in ranked):
                result.provenance = Provenance.AI if config.ai_mode == "replace" else Provenance.HYBRID

        if result.ai_error is not None:
            logger.record_ai_fallback()
            logger.info("AI scoring unavailable, using heuristic scores", user=user.email, error=result.ai_error)
            for c in ranked:
                c.provenance = Provenance.FALLBACK
            result.provenance = Provenance.FALLBACK

    result.candidates = ranked
    return result
