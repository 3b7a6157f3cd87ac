"""
Tests for matching configuration.
"""

import pytest

from jobmatch.config import MatchingConfig
from jobmatch.errors import ConfigError


class TestFromEnv:
    """Test JOBMATCH_* overrides."""

    def test_defaults(self):
        config = MatchingConfig.from_env({})
        assert config.relevance_cutoff == 0.4
        assert config.free_target_count == 5
        assert config.premium_target_count == 15
        assert config.batch_threshold == 5

    def test_overrides_are_typed(self):
        config = MatchingConfig.from_env({
            "JOBMATCH_FREE_TARGET_COUNT": "7",
            "JOBMATCH_RELEVANCE_CUTOFF": " 0.5 ",
            "JOBMATCH_AI_MODE": "replace",
            "UNRELATED": "x",
        })
        assert config.free_target_count == 7
        assert config.relevance_cutoff == 0.5
        assert config.ai_mode == "replace"

    def test_unparsable_value(self):
        with pytest.raises(ConfigError, match="JOBMATCH_MAX_WORKERS"):
            MatchingConfig.from_env({"JOBMATCH_MAX_WORKERS": "many"})

    def test_out_of_range_value(self):
        with pytest.raises(ConfigError, match="relevance_cutoff"):
            MatchingConfig.from_env({"JOBMATCH_RELEVANCE_CUTOFF": "1.5"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("JOBMATCH_BATCH_THRESHOLD", "8")
        assert MatchingConfig.from_env().batch_threshold == 8


class TestOverrides:
    """Test programmatic overrides."""

    def test_with_overrides_returns_copy(self):
        base = MatchingConfig()
        changed = base.with_overrides(max_workers=2)
        assert changed.max_workers == 2
        assert base.max_workers == 4

    @pytest.mark.parametrize("changes", [
        {"ai_mode": "vote"},
        {"max_source_fraction": 0.0},
        {"max_workers": 0},
        {"ai_blend_weight": 1.2},
    ])
    def test_invalid_overrides(self, changes):
        with pytest.raises(ConfigError):
            MatchingConfig().with_overrides(**changes)
