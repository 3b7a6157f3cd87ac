"""
Tests for the external AI scorer.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from jobmatch.ai_scorer import (
    AIScore,
    HttpAIScorer,
    SharedAIScorer,
    build_ai_scorer,
    build_prompt,
    parse_scores,
)
from jobmatch.config import MatchingConfig
from jobmatch.errors import AIScoringError
from jobmatch.locking import SlidingWindowRateLimiter
from jobmatch.models import Tier

from conftest import FakeAIScorer, build_postings, build_user


def reply(content, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = {"choices": [{"message": {"content": content}}]}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


def session_returning(*responses):
    http = MagicMock()
    http.post.side_effect = list(responses)
    return http


@pytest.fixture
def postings():
    return build_postings(3)


@pytest.fixture
def user():
    return build_user()


class TestParseScores:
    """Test reply parsing."""

    def test_keys_by_job_hash(self, postings):
        content = json.dumps([
            {"job_index": 0, "match_score": 88, "match_reason": "Strong finance fit"},
            {"job_index": 2, "match_score": 61},
        ])
        scores = parse_scores(content, postings)
        assert scores[postings[0].job_hash] == AIScore(88.0, "Strong finance fit")
        assert scores[postings[2].job_hash].score == 61.0
        assert postings[1].job_hash not in scores

    def test_strips_code_fence(self, postings):
        content = '```json\n[{"job_index": 1, "match_score": 70}]\n```'
        assert parse_scores(content, postings)[postings[1].job_hash].score == 70.0

    def test_skips_bad_items_and_clamps(self, postings):
        content = json.dumps([
            {"job_index": 9, "match_score": 80},
            {"job_index": "x", "match_score": 80},
            "nonsense",
            {"job_index": 0, "match_score": 140},
        ])
        scores = parse_scores(content, postings)
        assert list(scores) == [postings[0].job_hash]
        assert scores[postings[0].job_hash].score == 100.0

    @pytest.mark.parametrize("content", ["not json", '{"job_index": 0}'])
    def test_rejects_non_arrays(self, content, postings):
        with pytest.raises(AIScoringError):
            parse_scores(content, postings)


class TestPrompt:
    """Test prompt construction."""

    def test_free_prompt_omits_premium_fields(self, postings):
        user = build_user(skills=("Excel",))
        prompt = build_prompt(user, postings)
        assert "Skills" not in prompt
        assert "[2] Finance Analyst at Company 2" in prompt

    def test_premium_prompt_lists_skills(self, premium_user, postings):
        prompt = build_prompt(premium_user, postings)
        assert "- Skills: Excel, Financial Modelling" in prompt
        assert "- Industries: fintech" in prompt

    def test_free_prompt_omits_languages_and_keywords(self, postings):
        user = build_user(languages=("German", "Spanish"), career_keywords="valuation", company_size="startup")
        prompt = build_prompt(user, postings)
        assert "Languages" not in prompt
        assert "Keywords" not in prompt
        assert "Company size" not in prompt

    def test_premium_prompt_lists_languages_and_keywords(self, postings):
        user = build_user(tier=Tier.PREMIUM, languages=("German", "Spanish"), career_keywords="Valuation, M&A")
        prompt = build_prompt(user, postings)
        assert "- Languages: German, Spanish" in prompt
        assert "- Keywords: valuation, m&a" in prompt


class TestHttpAIScorer:
    """Test failure mapping of the HTTP scorer."""

    def test_success(self, user, postings):
        http = session_returning(reply(json.dumps([{"job_index": 0, "match_score": 77, "match_reason": "ok"}])))
        scorer = HttpAIScorer("sk-test", http=http)

        scores = scorer.score(user, postings)
        assert scores[postings[0].job_hash].score == 77.0
        _, kwargs = http.post.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == MatchingConfig().ai_timeout

    def test_empty_window_skips_request(self, user):
        http = MagicMock()
        assert HttpAIScorer("sk-test", http=http).score(user, []) == {}
        http.post.assert_not_called()

    def test_timeout(self, user, postings):
        http = session_returning(requests.exceptions.Timeout("read timed out"))
        with pytest.raises(AIScoringError, match="timed out"):
            HttpAIScorer("sk-test", http=http).score(user, postings)

    def test_http_error(self, user, postings):
        http = session_returning(reply("", status=503))
        with pytest.raises(AIScoringError, match="503"):
            HttpAIScorer("sk-test", http=http).score(user, postings)

    def test_malformed_response(self, user, postings):
        resp = MagicMock()
        resp.json.return_value = {"error": "overloaded"}
        with pytest.raises(AIScoringError, match="Unexpected AI response"):
            HttpAIScorer("sk-test", http=session_returning(resp)).score(user, postings)

    def test_unparsable_reply(self, user, postings):
        http = session_returning(reply("Sure! Here are your matches."))
        with pytest.raises(AIScoringError):
            HttpAIScorer("sk-test", http=http).score(user, postings)

    def test_circuit_opens_after_repeated_failures(self, user, postings):
        config = MatchingConfig().with_overrides(ai_failure_threshold=2)
        http = session_returning(*[requests.exceptions.Timeout()] * 3)
        scorer = HttpAIScorer("sk-test", config=config, http=http)

        for _ in range(2):
            with pytest.raises(AIScoringError):
                scorer.score(user, postings)
        with pytest.raises(AIScoringError, match="Circuit breaker is OPEN"):
            scorer.score(user, postings)
        assert http.post.call_count == 2

    def test_rate_limit_denial(self, user, postings):
        limiter = SlidingWindowRateLimiter(limit=1, clock=lambda: 100.0)
        http = session_returning(reply("[]"), reply("[]"))
        scorer = HttpAIScorer("sk-test", rate_limiter=limiter, http=http)

        assert scorer.score(user, postings) == {}
        with pytest.raises(AIScoringError, match="rate limit"):
            scorer.score(user, postings)
        assert http.post.call_count == 1


class TestSharedAIScorer:
    """Test segment-level sharing."""

    def test_scores_each_posting_once(self, postings):
        inner = FakeAIScorer()
        rep = build_user()
        shared = SharedAIScorer(inner, rep)

        first = shared.score(build_user(email="a@example.com"), postings[:2])
        second = shared.score(build_user(email="b@example.com"), postings)

        assert len(first) == 2 and len(second) == 3
        assert inner.calls == [[p.job_hash for p in postings[:2]], [postings[2].job_hash]]
        assert shared.calls == 2

    def test_failure_disables_segment(self, postings):
        inner = FakeAIScorer(fail=True)
        shared = SharedAIScorer(inner, build_user())

        with pytest.raises(AIScoringError):
            shared.score(build_user(), postings)
        with pytest.raises(AIScoringError, match="unavailable for segment"):
            shared.score(build_user(email="b@example.com"), postings)
        assert len(inner.calls) == 1


class TestBuildScorer:
    """Test scorer construction from the environment."""

    def test_disabled_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert build_ai_scorer(MatchingConfig()) is None

    def test_enabled_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        scorer = build_ai_scorer(MatchingConfig())
        assert isinstance(scorer, HttpAIScorer)
        assert scorer.api_key == "sk-test"
