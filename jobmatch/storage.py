"""
Match persistence and input loading.

MatchResult rows are written with a single INSERT ... ON CONFLICT DO
UPDATE keyed on (user_email, job_hash), so re-running a user overwrites
score and reason instead of duplicating rows.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import MatchResultRecord, get_engine, init_database
from .errors import PersistenceError, ValidationError
from .logger import get_logger
from .models import JobPosting, MatchCandidate, UserPreferences
from .retry import RetryError, exponential_backoff
from .schema import parse_posting, parse_user

logger = get_logger()


def match_row(email: str, candidate: MatchCandidate, now: datetime) -> Dict[str, Any]:
    return {
        "user_email": email,
        "job_hash": candidate.job_hash,
        "score": candidate.normalized_score,
        "reason": candidate.reason,
        "provenance": candidate.provenance.value,
        "recovery_level": int(candidate.recovery_level),
        "confidence": candidate.confidence.value,
        "created_at": now,
        "updated_at": now,
    }


@exponential_backoff(max_retries=2, base_delay=0.05, max_delay=0.5, exceptions=(OperationalError,))
def _execute_upsert(session_factory, rows: List[Dict[str, Any]]) -> None:
    session = session_factory()
    try:
        stmt = sqlite_insert(MatchResultRecord).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[MatchResultRecord.user_email, MatchResultRecord.job_hash],
            set_={
                "score": stmt.excluded.score,
                "reason": stmt.excluded.reason,
                "provenance": stmt.excluded.provenance,
                "recovery_level": stmt.excluded.recovery_level,
                "confidence": stmt.excluded.confidence,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        session.execute(stmt)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    finally:
        session.close()


class MatchStore:
    """SQLite-backed MatchResult store."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)
        self._session_factory = sessionmaker(bind=get_engine(self.db_path))

    def upsert_matches(self, email: str, candidates: Sequence[MatchCandidate]) -> int:
        """
        Insert or overwrite the user's matches.

        Args:
            email: User identity
            candidates: Selected candidates for the user

        Returns:
            Number of rows written

        Raises:
            PersistenceError: If the write fails after retries
        """
        if not candidates:
            return 0
        now = datetime.now()
        rows = [match_row(email, c, now) for c in candidates]
        try:
            _execute_upsert(self._session_factory, rows)
        except (RetryError, SQLAlchemyError) as e:
            logger.record_persistence_error(type(e.__cause__ or e).__name__)
            raise PersistenceError(f"Failed to persist matches for {email}: {e}") from e
        logger.record_persistence_write()
        logger.debug("Persisted matches", user=email, rows=len(rows))
        return len(rows)

    def get_matches(self, email: str) -> List[MatchResultRecord]:
        session = self._session_factory()
        try:
            return (
                session.query(MatchResultRecord)
                .filter_by(user_email=email)
                .order_by(MatchResultRecord.score.desc(), MatchResultRecord.job_hash)
                .all()
            )
        finally:
            session.close()

    def count(self, email: Optional[str] = None) -> int:
        session = self._session_factory()
        try:
            query = session.query(MatchResultRecord)
            if email is not None:
                query = query.filter_by(user_email=email)
            return query.count()
        finally:
            session.close()


def load_records(path: Path) -> List[Dict[str, Any]]:
    """
    Read a JSON array of records.

    Accepts either a bare array or an object with a "records" array.
    Missing or empty files yield no records.
    """
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        return []
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {path}", [str(e)]) from e
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list):
        raise ValidationError(f"Expected a JSON array in {path}", ["top-level value is not a list"])
    return data


def _parse_all(records: List[Dict[str, Any]], parser, kind: str) -> Tuple[list, List[str]]:
    parsed = []
    errors: List[str] = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            errors.append(f"{kind}[{i}]: record must be an object")
            continue
        try:
            parsed.append(parser(record))
        except ValidationError as e:
            errors.append(f"{kind}[{i}]: {'; '.join(e.errors)}")
    if errors:
        logger.warning(f"Skipped invalid {kind} records", count=len(errors))
    return parsed, errors


def load_users(path: Path) -> Tuple[List[UserPreferences], List[str]]:
    return _parse_all(load_records(path), parse_user, "user")


def load_postings(path: Path) -> Tuple[List[JobPosting], List[str]]:
    return _parse_all(load_records(path), parse_posting, "posting")
