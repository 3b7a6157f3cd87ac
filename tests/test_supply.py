"""
Tests for supply selection.
"""

from jobmatch.supply import is_early_career, select_eligible_users, select_fresh_postings

from conftest import NOW, build_posting, build_user


class TestFreshPostings:
    """Test posting eligibility."""

    def test_drops_stale(self):
        fresh = build_posting(company="Fresh", days_old=3)
        stale = build_posting(company="Stale", days_old=45)
        assert select_fresh_postings([fresh, stale], days=30, now=NOW) == [fresh]

    def test_keeps_undated(self):
        undated = build_posting(posted_at=None)
        assert select_fresh_postings([undated], now=NOW) == [undated]

    def test_requires_early_career(self):
        senior = build_posting(company="Senior", categories=("finance-investment",), experience_level="senior")
        tagged = build_posting(company="Tagged", categories=("graduate",), experience_level=None)
        assert select_fresh_postings([senior, tagged], now=NOW) == [tagged]

    def test_duplicate_hash_keeps_newest(self):
        older = build_posting(job_hash="dup", days_old=5, description="old copy")
        newer = build_posting(job_hash="dup", days_old=1, description="new copy")
        result = select_fresh_postings([newer, older], now=NOW)
        assert [p.description for p in result] == ["new copy"]

    def test_experience_level_is_normalized(self):
        assert is_early_career(build_posting(categories=(), experience_level="  Entry Level "))


class TestEligibleUsers:
    """Test user deduplication."""

    def test_last_record_wins(self):
        first = build_user(target_cities=("Berlin",))
        second = build_user(target_cities=("Madrid",))
        other = build_user(email="b@example.com")
        result = select_eligible_users([first, other, second])
        assert [u.email for u in result] == ["b@example.com", "ana@example.com"]
        assert result[1].target_cities == ("Madrid",)
