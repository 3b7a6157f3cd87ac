"""
Tunable matching parameters.

All product-tuned constants live here so they can be overridden per
deployment through JOBMATCH_* environment variables instead of being
hard-coded in the pipeline stages.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

ENV_PREFIX = "JOBMATCH_"


@dataclass(frozen=True)
class MatchingConfig:
    """Immutable configuration shared by every pipeline stage."""

    # Relevance scorer
    relevance_cutoff: float = 0.4
    category_points: float = 60.0
    completeness_bonus: float = 20.0
    multi_path_full_bonus: float = 15.0
    multi_path_partial_bonus: float = 10.0
    single_path_bonus: float = 5.0
    # Premium preference boosts
    keyword_points: float = 4.0
    keyword_cap: float = 10.0
    language_bonus: float = 5.0
    company_size_bonus: float = 3.0
    uncategorized_ratio: float = 0.5
    freshness_days: int = 30

    # External AI scorer
    ai_blend_weight: float = 0.7
    ai_mode: str = "blend"  # blend | replace
    ai_timeout: float = 20.0
    ai_model: str = "gpt-4o-mini"
    ai_endpoint: str = "https://api.openai.com/v1/chat/completions"
    ai_failure_threshold: int = 3
    ai_recovery_timeout: int = 60
    ai_requests_per_minute: int = 60

    # Tier strategy
    free_target_count: int = 5
    premium_target_count: int = 15
    free_ai_window: int = 30
    premium_ai_window: int = 50
    free_min_results: int = 3
    premium_min_results: int = 5

    # Diversity selector
    max_source_fraction: float = 1 / 3
    source_swap_min_pool: int = 10
    source_swap_penalty: float = 5.0

    # Batch coordinator
    batch_threshold: int = 5
    max_workers: int = 4
    lock_hold_seconds: float = 30.0
    lock_timeout: float = 0.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MatchingConfig":
        """
        Build a config from defaults overridden by JOBMATCH_* variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            MatchingConfig instance

        Raises:
            ConfigError: If a variable cannot be converted to the field type
        """
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key not in environ:
                continue
            raw = environ[key].strip()
            default = f.default
            try:
                if isinstance(default, bool):
                    overrides[f.name] = raw.lower() in ("1", "true", "yes", "on")
                elif isinstance(default, int):
                    overrides[f.name] = int(raw)
                elif isinstance(default, float):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw
            except ValueError as e:
                raise ConfigError(f"Invalid value for {key}: {raw!r}") from e

        config = cls(**overrides)
        config.validate()
        return config

    def with_overrides(self, **changes: Any) -> "MatchingConfig":
        config = replace(self, **changes)
        config.validate()
        return config

    def validate(self) -> None:
        if not 0.0 <= self.relevance_cutoff <= 1.0:
            raise ConfigError("relevance_cutoff must be within [0, 1]")
        if not 0.0 <= self.ai_blend_weight <= 1.0:
            raise ConfigError("ai_blend_weight must be within [0, 1]")
        if self.ai_mode not in ("blend", "replace"):
            raise ConfigError("ai_mode must be 'blend' or 'replace'")
        if not 0.0 < self.max_source_fraction <= 1.0:
            raise ConfigError("max_source_fraction must be within (0, 1]")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if self.batch_threshold < 1:
            raise ConfigError("batch_threshold must be at least 1")


DEFAULT_CONFIG = MatchingConfig()
