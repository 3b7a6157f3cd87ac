"""
Tests for schema validation.
"""

from datetime import timezone

import pytest

from jobmatch.errors import ValidationError
from jobmatch.models import Tier
from jobmatch.normalize import compute_job_hash
from jobmatch.schema import parse_posting, parse_timestamp, parse_user, validate_posting, validate_user


class TestValidateUser:
    """Test user record validation."""

    def test_valid_user(self, valid_user_record):
        assert validate_user(valid_user_record) == []

    def test_missing_email(self, valid_user_record):
        del valid_user_record["email"]
        assert any("email" in e for e in validate_user(valid_user_record))

    def test_target_cities_required(self, valid_user_record):
        valid_user_record["target_cities"] = ["  "]
        assert any("target_cities" in e for e in validate_user(valid_user_record))

    def test_too_many_cities(self, valid_user_record):
        valid_user_record["target_cities"] = ["Berlin", "Madrid", "Paris", "Rome"]
        assert any("at most 3" in e for e in validate_user(valid_user_record))

    def test_unknown_tier(self, valid_user_record):
        valid_user_record["tier"] = "gold"
        assert any("tier" in e for e in validate_user(valid_user_record))

    def test_list_fields_must_be_lists(self, valid_user_record):
        valid_user_record["skills"] = "Excel"
        assert any("skills" in e for e in validate_user(valid_user_record))

    def test_work_environments_values(self, valid_user_record):
        valid_user_record["work_environments"] = ["remote", "beach"]
        assert any("work_environments" in e for e in validate_user(valid_user_record))


class TestParseUser:
    """Test conversion into UserPreferences."""

    def test_normalizes_email(self, valid_user_record):
        user = parse_user(valid_user_record)
        assert user.email == "ana@example.com"
        assert user.target_cities == ("Berlin", "Madrid")
        assert user.tier == Tier.FREE

    def test_premium_fields(self, valid_user_record):
        valid_user_record.update(tier="premium", skills=["Excel", " "], work_environments=["remote", "hybrid"])
        user = parse_user(valid_user_record)
        assert user.is_premium
        assert user.skills == ("Excel",)
        assert user.work_environments == ("remote", "hybrid")

    def test_invalid_raises_with_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_user({"email": "broken"})
        assert len(exc_info.value.errors) == 2


class TestValidatePosting:
    """Test posting validation."""

    def test_valid_posting(self, valid_posting_record):
        assert validate_posting(valid_posting_record) == []

    def test_missing_required_field(self):
        errors = validate_posting({"company": "acme"})
        assert any("title" in e for e in errors)

    def test_empty_string_field(self):
        assert validate_posting({"company": "acme", "title": "   "})

    def test_categories_must_be_list(self, valid_posting_record):
        valid_posting_record["categories"] = "finance-investment"
        assert any("categories" in e for e in validate_posting(valid_posting_record))

    def test_language_requirements_must_be_list(self, valid_posting_record):
        valid_posting_record["language_requirements"] = "German"
        assert any("language_requirements" in e for e in validate_posting(valid_posting_record))

    def test_bad_timestamp(self, valid_posting_record):
        valid_posting_record["posted_at"] = "last tuesday"
        assert any("posted_at" in e for e in validate_posting(valid_posting_record))

    def test_visa_flag_must_be_bool(self, valid_posting_record):
        valid_posting_record["visa_friendly"] = "yes"
        assert any("visa_friendly" in e for e in validate_posting(valid_posting_record))


class TestParsePosting:
    """Test conversion into JobPosting."""

    def test_normalizes_fields(self, valid_posting_record):
        posting = parse_posting(valid_posting_record)
        assert posting.city == "berlin"
        assert posting.source == "linkedin"
        assert posting.work_environment == "hybrid"
        assert posting.categories == frozenset({"finance-investment", "early-career"})
        assert posting.posted_at.tzinfo == timezone.utc

    def test_hash_derived_from_content(self, valid_posting_record):
        posting = parse_posting(valid_posting_record)
        assert posting.job_hash == compute_job_hash("Graduate Finance Analyst", "Acme Capital", "Berlin, Germany")

    def test_explicit_hash_is_kept(self, valid_posting_record):
        valid_posting_record["job_hash"] = "abc123"
        assert parse_posting(valid_posting_record).job_hash == "abc123"

    def test_unknown_environment_is_unclear(self, valid_posting_record):
        valid_posting_record["work_environment"] = "sometimes"
        assert parse_posting(valid_posting_record).work_environment == "unclear"

    def test_language_requirements(self, valid_posting_record):
        assert parse_posting(valid_posting_record).language_requirements == frozenset()
        valid_posting_record["language_requirements"] = ["German", "English"]
        assert parse_posting(valid_posting_record).language_requirements == frozenset({"German", "English"})

    def test_naive_timestamp_assumed_utc(self):
        ts = parse_timestamp("2026-01-10T08:00:00")
        assert ts.tzinfo == timezone.utc
        assert ts.hour == 8
