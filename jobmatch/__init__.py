"""JobMatch: preference-aware job matching for early-career candidates."""

__version__ = "0.1.0"
