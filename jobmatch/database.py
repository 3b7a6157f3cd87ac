"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for match result storage.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class MatchResultRecord(Base):
    """Persisted match for one (user, posting) pair."""

    __tablename__ = "match_results"

    user_email = Column(String, primary_key=True)
    job_hash = Column(String, primary_key=True)
    score = Column(Float, nullable=False)  # normalized to [0, 1]
    reason = Column(Text, nullable=False, default="")
    provenance = Column(String, nullable=False)  # rules, ai, hybrid, fallback
    recovery_level = Column(Integer, nullable=False, default=0)
    confidence = Column(String, nullable=False, default="high")
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def get_engine(db_path: Path):
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path))
    return Session()
