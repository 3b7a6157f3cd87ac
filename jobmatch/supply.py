"""
Supply selection for a matching run.

Narrows the raw user and posting supplies to what a run may use:
early-career postings within the freshness window, and one record per
user email.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from .logger import get_logger
from .models import JobPosting, UserPreferences
from .normalize import normalize_text

logger = get_logger()

EARLY_CAREER_LEVELS = {
    "entry-level",
    "entry level",
    "early-career",
    "early career",
    "graduate",
    "business-graduate",
    "junior",
    "internship",
    "intern",
    "working student",
    "trainee",
}
EARLY_CAREER_TAGS = {"early-career", "internship", "graduate", "business-graduate"}


def is_early_career(posting: JobPosting) -> bool:
    if normalize_text(posting.experience_level) in EARLY_CAREER_LEVELS:
        return True
    return not EARLY_CAREER_TAGS.isdisjoint(posting.categories)


def select_fresh_postings(
    postings: Sequence[JobPosting],
    days: int = 30,
    now: Optional[datetime] = None,
) -> List[JobPosting]:
    """
    Keep early-career postings posted within the last `days` days.

    Undated postings are kept. Duplicate job_hash values keep the most
    recently posted copy.

    Args:
        postings: Raw posting supply
        days: Freshness window in days
        now: Reference time (default: current UTC time)

    Returns:
        Eligible postings in input order
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)

    kept: Dict[str, JobPosting] = {}
    stale = not_early = 0
    for posting in postings:
        if not is_early_career(posting):
            not_early += 1
            continue
        posted = posting.posted_at
        if posted is not None:
            if posted.tzinfo is None:
                posted = posted.replace(tzinfo=timezone.utc)
            if posted < cutoff:
                stale += 1
                continue
        existing = kept.get(posting.job_hash)
        if existing is None or _newer(posting, existing):
            kept[posting.job_hash] = posting

    logger.debug(
        "Selected fresh postings",
        total=len(postings),
        kept=len(kept),
        stale=stale,
        not_early_career=not_early,
        days_threshold=days,
    )
    return list(kept.values())


def _newer(a: JobPosting, b: JobPosting) -> bool:
    if a.posted_at is None:
        return False
    return b.posted_at is None or a.posted_at > b.posted_at


def select_eligible_users(users: Sequence[UserPreferences]) -> List[UserPreferences]:
    """Drop repeated emails, keeping the last record seen."""
    by_email: Dict[str, UserPreferences] = {}
    for user in users:
        by_email.pop(user.email, None)
        by_email[user.email] = user
    if len(by_email) < len(users):
        logger.debug("Dropped duplicate users", duplicates=len(users) - len(by_email))
    return list(by_email.values())
