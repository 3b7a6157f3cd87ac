"""
Exception hierarchy for the matching pipeline.
"""

from typing import List, Optional


class MatchingError(Exception):
    """Base class for all matching errors."""
    pass


class ConfigError(MatchingError):
    """Raised when configuration values cannot be parsed."""
    pass


class ValidationError(MatchingError):
    """Raised when a user or posting record fails boundary validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class AIScoringError(MatchingError):
    """Raised when the external AI scorer is unavailable, slow or erroring."""
    pass


class PersistenceError(MatchingError):
    """Raised when match results cannot be written to the store."""
    pass
