"""
External AI scoring.

The AI scorer is optional. When configured, it re-scores a bounded
window of the best heuristic candidates. Every failure mode (timeout,
HTTP error, malformed reply, open circuit, rate-limit denial) surfaces
as AIScoringError so the relevance scorer can degrade to heuristics.
No retries happen here.
"""

import json
import os
import re
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import requests

from .config import MatchingConfig
from .errors import AIScoringError
from .logger import get_logger
from .models import JobPosting, UserPreferences
from .retry import CircuitBreaker, CircuitOpenError

logger = get_logger()

SYSTEM_PROMPT = "You are an expert job matching assistant. Analyze jobs and return JSON matches."
MAX_DESCRIPTION_CHARS = 400


@dataclass(frozen=True)
class AIScore:
    score: float  # 0-100
    reason: str


class AIScorer:
    """Interface for external scorers: job_hash -> AIScore for a posting window."""

    def score(self, user: UserPreferences, postings: Sequence[JobPosting]) -> Dict[str, AIScore]:
        raise NotImplementedError


def build_prompt(user: UserPreferences, postings: Sequence[JobPosting]) -> str:
    lines = [
        "USER PROFILE:",
        f"- Career paths: {', '.join(user.career_paths) or 'Not specified'}",
        f"- Target cities: {', '.join(user.target_cities)}",
        f"- Experience level: {user.entry_level_preference}",
        f"- Work environment: {user.work_environment or 'flexible'}",
    ]
    if user.is_premium:
        lines.append(f"- Skills: {', '.join(user.effective_skills) or 'Not specified'}")
        lines.append(f"- Industries: {', '.join(user.effective_industries) or 'Not specified'}")
        lines.append(f"- Languages: {', '.join(user.effective_languages) or 'Not specified'}")
        if user.effective_career_keywords:
            lines.append(f"- Keywords: {', '.join(user.effective_career_keywords)}")
        if user.effective_company_size:
            lines.append(f"- Company size: {user.effective_company_size}")

    lines.append("")
    lines.append("JOBS:")
    for i, p in enumerate(postings):
        desc = " ".join(p.description.split())[:MAX_DESCRIPTION_CHARS]
        lines.append(f"[{i}] {p.title} at {p.company} ({p.city or p.location or 'remote'}): {desc}")

    lines.append("")
    lines.append(
        "For each job return an object with job_index (0-based), match_score (1-100) "
        "and match_reason (one or two specific sentences). "
        "Return ONLY a JSON array, no other text."
    )
    return "\n".join(lines)


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_scores(content: str, postings: Sequence[JobPosting]) -> Dict[str, AIScore]:
    """
    Parse the model reply into scores keyed by job_hash.

    Raises:
        AIScoringError: If the reply is not a JSON array of match objects
    """
    text = _FENCE.sub("", content.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIScoringError(f"AI reply is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise AIScoringError("AI reply must be a JSON array")

    scores: Dict[str, AIScore] = {}
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            index = int(item["job_index"])
            value = float(item["match_score"])
        except (KeyError, TypeError, ValueError):
            continue
        if not 0 <= index < len(postings):
            continue
        scores[postings[index].job_hash] = AIScore(
            score=min(max(value, 0.0), 100.0),
            reason=str(item.get("match_reason") or "").strip(),
        )
    return scores


class HttpAIScorer(AIScorer):
    """Scores postings through an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: str,
        config: Optional[MatchingConfig] = None,
        rate_limiter=None,
        http: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.config = config or MatchingConfig()
        self.rate_limiter = rate_limiter
        self.http = http or requests.Session()
        self.breaker = CircuitBreaker(
            failure_threshold=self.config.ai_failure_threshold,
            recovery_timeout=self.config.ai_recovery_timeout,
            expected_exception=AIScoringError,
        )

    def score(self, user: UserPreferences, postings: Sequence[JobPosting]) -> Dict[str, AIScore]:
        if not postings:
            return {}
        if self.rate_limiter is not None and not self.rate_limiter.allow("ai-scorer"):
            logger.record_ai_failure("RateLimited")
            raise AIScoringError("AI scorer rate limit reached")
        try:
            return self.breaker.call(self._request, user, postings)
        except CircuitOpenError as e:
            logger.record_ai_failure("CircuitOpen")
            raise AIScoringError(str(e)) from e

    def _request(self, user: UserPreferences, postings: Sequence[JobPosting]) -> Dict[str, AIScore]:
        logger.record_ai_call()
        payload = {
            "model": self.config.ai_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(user, postings)},
            ],
            "temperature": 0.2,
        }
        try:
            resp = self.http.post(
                self.config.ai_endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.config.ai_timeout,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except requests.exceptions.Timeout as e:
            logger.record_ai_failure("Timeout")
            logger.warning("AI scoring timed out", user=user.email, timeout=self.config.ai_timeout)
            raise AIScoringError("AI scoring timed out") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.record_ai_failure(f"HTTPError_{status}")
            logger.warning("AI scoring request failed", user=user.email, status=status)
            raise AIScoringError(f"AI scoring request failed ({status})") from e
        except requests.exceptions.RequestException as e:
            logger.record_ai_failure("RequestException")
            logger.warning("AI scoring request error", user=user.email, error=str(e))
            raise AIScoringError(f"AI scoring request error: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.record_ai_failure("MalformedResponse")
            raise AIScoringError(f"Unexpected AI response shape: {e}") from e

        try:
            return parse_scores(content, postings)
        except AIScoringError:
            logger.record_ai_failure("UnparsableReply")
            raise


class SharedAIScorer(AIScorer):
    """
    Amortizes AI calls across a segment of similar users.

    Scores are requested with the segment's representative profile and
    cached by job_hash, so later members only send postings nobody in the
    segment has scored yet. A failure marks the scorer unavailable for the
    rest of the run.
    """

    def __init__(self, inner: AIScorer, representative: UserPreferences):
        self.inner = inner
        self.representative = representative
        self._cache: Dict[str, AIScore] = {}
        self._seen: set = set()
        self._failed: Optional[str] = None
        self._lock = threading.Lock()
        self.calls = 0

    def score(self, user: UserPreferences, postings: Sequence[JobPosting]) -> Dict[str, AIScore]:
        with self._lock:
            if self._failed is not None:
                raise AIScoringError(f"AI scorer unavailable for segment: {self._failed}")
            missing: List[JobPosting] = [p for p in postings if p.job_hash not in self._seen]
            if missing:
                self.calls += 1
                try:
                    fresh = self.inner.score(self.representative, missing)
                except AIScoringError as e:
                    self._failed = str(e)
                    raise
                self._cache.update(fresh)
                self._seen.update(p.job_hash for p in missing)
            return {p.job_hash: self._cache[p.job_hash] for p in postings if p.job_hash in self._cache}


def build_ai_scorer(config: MatchingConfig, rate_limiter=None) -> Optional[AIScorer]:
    """Return an HTTP scorer when OPENAI_API_KEY is set, otherwise None."""
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        logger.info("OPENAI_API_KEY not set; AI scoring disabled")
        return None
    return HttpAIScorer(api_key, config=config, rate_limiter=rate_limiter)
