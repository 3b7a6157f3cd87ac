"""
Eligibility pre-filter.

Reduces a posting pool to the postings satisfying a user's hard
constraints. Which constraints apply is decided by a FilterPolicy, so
the same function serves every tier and every recovery level.

Invariant: the output is a subsequence of the input (never larger, order
preserved). This module never raises on an empty result; escalation is
the caller's job.
"""

import re
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, List, Sequence

from .categories import career_categories, categories_for_paths
from .locations import broaden_industry, canonical_city, expand_cities, language_names
from .logger import get_logger
from .models import JobPosting, UserPreferences, WorkEnvironment
from .normalize import normalize_city, normalize_text

logger = get_logger()

EXACT = "exact"
PARTIAL = "partial"

# Shorter tokens ("ai", "api") match nearly every description
MIN_SKILL_TOKEN_LEN = 4


@dataclass(frozen=True)
class FilterPolicy:
    """Which hard constraints the pre-filter enforces."""

    use_city: bool = True
    use_category: bool = True
    use_skills: bool = False
    use_industries: bool = False
    use_work_environment: bool = False
    use_visa: bool = False
    use_languages: bool = False
    skill_match: str = EXACT
    expand_cities: bool = False
    broaden_industries: bool = False
    # Pass when either the skill or the industry check passes
    skills_or_industries: bool = False


CITY_AND_CATEGORY = FilterPolicy()
FULL_PREMIUM = FilterPolicy(
    use_skills=True,
    use_industries=True,
    use_work_environment=True,
    use_visa=True,
    use_languages=True,
)
CITY_ONLY = FilterPolicy(use_category=False)
NO_FILTERS = FilterPolicy(use_city=False, use_category=False)


def city_matches(posting: JobPosting, targets: FrozenSet[str], expanded: bool = False) -> bool:
    """City-less postings are city-agnostic (e.g. remote) and always match."""
    if not posting.city:
        return True
    city = normalize_city(posting.city)
    if city in targets:
        return True
    return expanded and canonical_city(city) in targets


def category_matches(posting: JobPosting, user_categories: FrozenSet[str]) -> bool:
    tags = career_categories(posting.categories)
    if not user_categories or not tags:
        return True
    return not tags.isdisjoint(user_categories)


def _skill_terms(skill: str) -> List[str]:
    low = normalize_text(skill)
    terms = [low]
    for part in re.findall(r"[a-z0-9+#]+", low):
        if part != low and len(part) >= MIN_SKILL_TOKEN_LEN:
            terms.append(part)
    return terms


def skills_match(posting: JobPosting, skills: Sequence[str], mode: str = EXACT) -> bool:
    if not skills:
        return True
    text = posting.searchable_text
    for skill in skills:
        if mode == PARTIAL:
            if any(term and term in text for term in _skill_terms(skill)):
                return True
        else:
            low = normalize_text(skill)
            if low and re.search(r"(?<!\w)" + re.escape(low) + r"(?!\w)", text):
                return True
    return False


def industries_match(posting: JobPosting, industries: Sequence[str], broaden: bool = False) -> bool:
    if not industries:
        return True
    text = normalize_text(f"{posting.title} {posting.company} {posting.description}")
    for industry in industries:
        terms = broaden_industry(industry) if broaden else {normalize_text(industry)}
        if any(term and term in text for term in terms):
            return True
    return False


def work_environment_matches(posting: JobPosting, accepted: AbstractSet[str]) -> bool:
    """Postings with an unknown environment pass; otherwise it must be accepted."""
    if not accepted:
        return True
    job_env = normalize_text(posting.work_environment)
    if not job_env or job_env == WorkEnvironment.UNCLEAR.value:
        return True
    return job_env in accepted


def languages_match(posting: JobPosting, languages: Sequence[str]) -> bool:
    """A posting with explicit language requirements needs one the user speaks."""
    if not languages or not posting.language_requirements:
        return True
    spoken = frozenset().union(*(language_names(lang) for lang in languages))
    for required in posting.language_requirements:
        req = normalize_text(required)
        if any(name in req for name in spoken):
            return True
    return False


def visa_matches(posting: JobPosting, user: UserPreferences) -> bool:
    if not user.needs_visa_sponsorship:
        return True
    return posting.visa_friendly is not False


def target_city_set(cities: Iterable[str], expanded: bool = False) -> FrozenSet[str]:
    if expanded:
        return expand_cities(cities) | frozenset(canonical_city(c) for c in cities)
    return frozenset(normalize_city(c) for c in cities if c.strip())


def prefilter(
    user: UserPreferences,
    postings: Sequence[JobPosting],
    policy: FilterPolicy = CITY_AND_CATEGORY,
) -> List[JobPosting]:
    """
    Return the postings that satisfy the user's hard constraints.

    Args:
        user: User preferences (premium-only fields are read through the
            effective_* accessors, so free users never filter on them)
        postings: Candidate pool
        policy: Which constraints to enforce

    Returns:
        Filtered list, in input order
    """
    cities = target_city_set(user.target_cities, policy.expand_cities)
    user_categories = categories_for_paths(user.career_paths)
    skills = user.effective_skills
    industries = user.effective_industries
    languages = user.effective_languages
    environments = user.accepted_work_environments if user.is_premium else frozenset()

    filtered: List[JobPosting] = []
    for posting in postings:
        if policy.use_city and cities and not city_matches(posting, cities, policy.expand_cities):
            continue
        if policy.use_category and not category_matches(posting, user_categories):
            continue
        if policy.skills_or_industries and (skills or industries):
            skill_ok = bool(skills) and skills_match(posting, skills, policy.skill_match)
            industry_ok = bool(industries) and industries_match(posting, industries, policy.broaden_industries)
            if not (skill_ok or industry_ok):
                continue
        else:
            if policy.use_skills and not skills_match(posting, skills, policy.skill_match):
                continue
            if policy.use_industries and not industries_match(posting, industries, policy.broaden_industries):
                continue
        if policy.use_work_environment and not work_environment_matches(posting, environments):
            continue
        if policy.use_languages and not languages_match(posting, languages):
            continue
        if policy.use_visa and not visa_matches(posting, user):
            continue
        filtered.append(posting)

    logger.debug(
        "Prefiltered postings",
        user=user.email,
        before=len(postings),
        after=len(filtered),
    )
    return filtered
