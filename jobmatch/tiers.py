"""
Tier strategy.

Free and premium users run the same pipeline; a TierProfile carries the
only differences: pre-filter strictness, result-set size, AI window and
the minimum result count that stops recovery escalation.
"""

from dataclasses import dataclass
from typing import Optional

from .config import MatchingConfig
from .models import Tier, UserPreferences
from .prefilter import CITY_AND_CATEGORY, FULL_PREMIUM, FilterPolicy


@dataclass(frozen=True)
class TierProfile:
    tier: Tier
    policy: FilterPolicy
    target_count: int
    ai_window: int
    min_results: int
    allows_premium_levels: bool = False
    balance_work_environments: bool = False


def free_profile(config: MatchingConfig) -> TierProfile:
    return TierProfile(
        tier=Tier.FREE,
        policy=CITY_AND_CATEGORY,
        target_count=config.free_target_count,
        ai_window=config.free_ai_window,
        min_results=config.free_min_results,
    )


def premium_profile(config: MatchingConfig) -> TierProfile:
    return TierProfile(
        tier=Tier.PREMIUM,
        policy=FULL_PREMIUM,
        target_count=config.premium_target_count,
        ai_window=config.premium_ai_window,
        min_results=config.premium_min_results,
        allows_premium_levels=True,
        balance_work_environments=True,
    )


def profile_for(user: UserPreferences, config: Optional[MatchingConfig] = None) -> TierProfile:
    """Pick the profile matching the user's subscription tier."""
    config = config or MatchingConfig()
    if user.is_premium:
        return premium_profile(config)
    return free_profile(config)
