"""
Batch coordinator.

Runs the matching pipeline for a cohort of users against one posting
pool and persists each user's results. A run is serialized through a
RunLock. Cohorts at or above the batch threshold are grouped into
segments of similar users that share one AI scorer; smaller cohorts run
each user independently. Either way every user ends with the same kind
of persisted MatchResult rows.
"""

import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .ai_scorer import AIScorer, SharedAIScorer
from .config import MatchingConfig
from .errors import PersistenceError
from .locking import LocalRunLock, RunLock
from .logger import get_logger
from .models import JobPosting, UserPreferences
from .normalize import normalize_city, normalize_text
from .pipeline import MatchingPipeline, UserOutcome, UserStatus
from .storage import MatchStore
from .supply import select_eligible_users, select_fresh_postings

logger = get_logger()

PER_USER = "per_user"
SEGMENTED = "segmented"


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    ALREADY_RUNNING = "already_running"
    NOTHING_TO_DO = "nothing_to_do"


@dataclass
class BatchOutcome:
    status: BatchStatus
    mode: Optional[str] = None
    users: List[UserOutcome] = field(default_factory=list)
    segments: int = 0
    ai_requests: int = 0
    elapsed_ms: float = 0.0

    def count(self, status: UserStatus) -> int:
        return sum(1 for u in self.users if u.status == status)

    @property
    def persistence_errors(self) -> int:
        return self.count(UserStatus.PERSISTENCE_ERROR)

    def by_email(self) -> Dict[str, UserOutcome]:
        return {u.email: u for u in self.users}


def segment_key(user: UserPreferences) -> Tuple:
    """Users sharing this key can share one AI scoring pass."""
    first_path = normalize_text(user.career_paths[0]) if user.career_paths else ""
    cities = tuple(sorted(normalize_city(c) for c in user.target_cities))
    return (user.tier.value, first_path, cities, normalize_text(user.entry_level_preference))


def group_segments(users: Sequence[UserPreferences]) -> "OrderedDict[Tuple, List[UserPreferences]]":
    segments: "OrderedDict[Tuple, List[UserPreferences]]" = OrderedDict()
    for user in users:
        segments.setdefault(segment_key(user), []).append(user)
    return segments


class BatchCoordinator:
    """Coordinates one matching run over many users."""

    def __init__(
        self,
        store: Optional[MatchStore] = None,
        config: Optional[MatchingConfig] = None,
        ai_scorer: Optional[AIScorer] = None,
        lock: Optional[RunLock] = None,
        now: Optional[datetime] = None,
    ):
        self.config = config or MatchingConfig()
        self.store = store
        self.ai_scorer = ai_scorer
        self.lock = lock or LocalRunLock(hold_seconds=self.config.lock_hold_seconds)
        self.now = now
        self.pipeline = MatchingPipeline(self.config, now=now)

    def run(self, users: Sequence[UserPreferences], postings: Sequence[JobPosting]) -> BatchOutcome:
        """
        Match and persist results for every eligible user.

        Args:
            users: User supply for the run
            postings: Posting supply for the run

        Returns:
            BatchOutcome; ALREADY_RUNNING when the run lock is held
            elsewhere, NOTHING_TO_DO when either supply is empty
        """
        if not self.lock.acquire(timeout=self.config.lock_timeout):
            logger.warning("Batch run already in progress", users=len(users))
            return BatchOutcome(status=BatchStatus.ALREADY_RUNNING)
        try:
            return self._run(users, postings)
        finally:
            self.lock.release()

    def _run(self, users: Sequence[UserPreferences], postings: Sequence[JobPosting]) -> BatchOutcome:
        started = time.perf_counter()
        eligible = select_eligible_users(users)
        pool = select_fresh_postings(postings, days=self.config.freshness_days, now=self.now)

        if not eligible or not pool:
            logger.info("Nothing to do", users=len(eligible), postings=len(pool))
            return BatchOutcome(status=BatchStatus.NOTHING_TO_DO)

        if len(eligible) >= self.config.batch_threshold:
            outcome = self._run_segmented(eligible, pool)
        else:
            outcome = self._run_per_user(eligible, pool)

        order = {u.email: i for i, u in enumerate(eligible)}
        outcome.users.sort(key=lambda u: order.get(u.email, len(order)))
        outcome.elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            "Batch run complete",
            mode=outcome.mode,
            users=len(outcome.users),
            matched=outcome.count(UserStatus.MATCHED),
            no_matches=outcome.count(UserStatus.NO_MATCHES),
            persistence_errors=outcome.persistence_errors,
            failed=outcome.count(UserStatus.FAILED),
            segments=outcome.segments,
            ai_requests=outcome.ai_requests,
            elapsed_ms=outcome.elapsed_ms,
        )
        return outcome

    def _run_per_user(self, users: List[UserPreferences], pool: List[JobPosting]) -> BatchOutcome:
        outcome = BatchOutcome(status=BatchStatus.COMPLETED, mode=PER_USER)
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {
                executor.submit(self._process_user, user, pool, self.ai_scorer): user
                for user in users
            }
            for future in as_completed(futures):
                outcome.users.append(future.result())
        return outcome

    def _run_segmented(self, users: List[UserPreferences], pool: List[JobPosting]) -> BatchOutcome:
        segments = group_segments(users)
        outcome = BatchOutcome(status=BatchStatus.COMPLETED, mode=SEGMENTED, segments=len(segments))
        logger.info("Grouped users into segments", users=len(users), segments=len(segments))

        shared: List[SharedAIScorer] = []
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = []
            for members in segments.values():
                scorer = None
                if self.ai_scorer is not None:
                    scorer = SharedAIScorer(self.ai_scorer, representative=members[0])
                    shared.append(scorer)
                futures.append(executor.submit(self._run_segment, members, pool, scorer))
            for future in as_completed(futures):
                outcome.users.extend(future.result())

        outcome.ai_requests = sum(s.calls for s in shared)
        return outcome

    def _run_segment(
        self,
        members: List[UserPreferences],
        pool: List[JobPosting],
        scorer: Optional[SharedAIScorer],
    ) -> List[UserOutcome]:
        # Members run in order so later ones reuse earlier AI scores
        return [self._process_user(user, pool, scorer) for user in members]

    def _process_user(
        self,
        user: UserPreferences,
        pool: List[JobPosting],
        scorer: Optional[AIScorer],
    ) -> UserOutcome:
        try:
            result = self.pipeline.match_user(user, pool, ai_scorer=scorer)
        except Exception as e:
            logger.error("User matching failed", user=user.email, error=f"{type(e).__name__}: {e}")
            return UserOutcome(email=user.email, status=UserStatus.FAILED, error=str(e))

        if result.matches and self.store is not None:
            try:
                self.store.upsert_matches(user.email, result.matches)
            except PersistenceError as e:
                logger.error("Failed to persist matches", user=user.email, error=str(e))
                result.status = UserStatus.PERSISTENCE_ERROR
                result.error = str(e)
        return result
