"""
Tests for tier profiles and the per-user pipeline.
"""

from jobmatch.config import MatchingConfig
from jobmatch.models import Provenance, RecoveryLevel, Tier
from jobmatch.pipeline import MatchingPipeline, UserStatus
from jobmatch.prefilter import CITY_AND_CATEGORY, FULL_PREMIUM
from jobmatch.tiers import profile_for

from conftest import NOW, FakeAIScorer, build_posting, build_postings, build_user


class TestTierProfiles:
    """Profiles differ only in configuration."""

    def test_free_profile(self):
        profile = profile_for(build_user())
        assert profile.tier == Tier.FREE
        assert profile.policy == CITY_AND_CATEGORY
        assert (profile.target_count, profile.ai_window, profile.min_results) == (5, 30, 3)
        assert not profile.allows_premium_levels

    def test_premium_profile(self):
        profile = profile_for(build_user(tier=Tier.PREMIUM))
        assert profile.policy == FULL_PREMIUM
        assert (profile.target_count, profile.ai_window, profile.min_results) == (15, 50, 5)
        assert profile.allows_premium_levels

    def test_profile_reads_config(self):
        config = MatchingConfig().with_overrides(free_target_count=7)
        assert profile_for(build_user(), config).target_count == 7


class TestMatchingPipeline:
    """Test the per-user entry point."""

    def test_berlin_madrid_scenario(self):
        """4 Berlin, 1 Madrid, 10 Paris finance postings: 3 Berlin + 1 Madrid."""
        user = build_user(target_cities=("Berlin", "Madrid"), career_paths=("finance-investment",))
        pool = (
            build_postings(4, prefix="Ber", city="berlin")
            + build_postings(1, prefix="Mad", city="madrid")
            + build_postings(10, prefix="Par", city="paris")
        )
        outcome = MatchingPipeline(now=NOW).match_user(user, pool)

        assert outcome.status == UserStatus.MATCHED
        assert outcome.level == RecoveryLevel.PRIMARY
        cities = sorted(c.posting.city for c in outcome.matches)
        assert cities == ["berlin", "berlin", "berlin", "madrid"]

    def test_premium_gets_larger_result_set(self):
        user = build_user(tier=Tier.PREMIUM)
        pool = build_postings(20, source="linkedin") + build_postings(20, prefix="Ind", source="indeed")
        outcome = MatchingPipeline(now=NOW).match_user(user, pool)
        assert len(outcome.matches) == 15

    def test_premium_work_environments_exclude_on_site(self):
        """A remote/hybrid premium user never sees the larger on-site supply at L0."""
        user = build_user(tier=Tier.PREMIUM, work_environments=("remote", "hybrid"))
        pool = (
            build_postings(20, prefix="Site", work_environment="on-site", days_old=0.5)
            + build_postings(3, prefix="Rem", work_environment="remote")
            + build_postings(3, prefix="Hyb", work_environment="hybrid")
        )
        outcome = MatchingPipeline(now=NOW).match_user(user, pool)

        assert outcome.level == RecoveryLevel.PRIMARY
        envs = sorted(c.posting.work_environment for c in outcome.matches)
        assert envs == ["hybrid"] * 3 + ["remote"] * 3

    def test_stage_counts(self):
        user = build_user()
        pool = build_postings(6) + [build_posting(company="Far", city="paris")]
        outcome = MatchingPipeline(now=NOW).match_user(user, pool)
        assert outcome.stage_counts["pool"] == 7
        assert outcome.stage_counts["filtered"] == 6
        assert outcome.stage_counts["selected"] == 5
        assert outcome.stage_counts["levels_tried"] == 1

    def test_ai_timeout_tags_every_result_fallback(self):
        user = build_user()
        pool = build_postings(8)
        baseline = MatchingPipeline(now=NOW).match_user(user, pool)
        degraded = MatchingPipeline(ai_scorer=FakeAIScorer(fail=True), now=NOW).match_user(user, pool)

        assert all(c.provenance == Provenance.FALLBACK for c in degraded.matches)
        assert [c.job_hash for c in degraded.matches] == [c.job_hash for c in baseline.matches]

    def test_empty_pool_is_explicit_no_matches(self):
        outcome = MatchingPipeline(now=NOW).match_user(build_user(), [])
        assert outcome.status == UserStatus.NO_MATCHES
        assert outcome.summary()["status"] == "no_matches"
