"""
Diversity selector.

Turns a ranked candidate list into the final top-K set:

1. City balance: each declared city gets floor(K / C) slots, and the
   K mod C remainder goes to the first-declared cities. Each city fills
   its quota from its own ranked sub-list. A city that runs short leaves
   its slots to city-agnostic postings only, never to another city.
2. Work-environment balance and the per-source cap are soft constraints
   applied while filling: work environment is relaxed first, then the
   source cap, but a city quota is never exceeded.
3. Source swap: if every pick shares one source and at least
   `source_swap_min_pool` unpicked candidates come from other sources,
   the lowest-scoring pick is replaced by the best other-source candidate
   (score penalized by `source_swap_penalty`). With the default
   `max_source_fraction` of 1/3 and city balancing this cannot trigger;
   it is a backstop for configurations that relax the source cap, such as
   `max_source_fraction=1.0`.

The selector never pads with candidates outside the ranked input.
"""

import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from .locations import canonical_city
from .logger import get_logger
from .models import MatchCandidate, WorkEnvironment
from .normalize import normalize_city, normalize_text
from .scoring import rank

logger = get_logger()

AGNOSTIC = "__any__"


@dataclass(frozen=True)
class DistributionConfig:
    target_count: int
    max_source_fraction: float = 1 / 3
    target_cities: Tuple[str, ...] = ()
    balance_cities: bool = True
    target_work_environments: Tuple[str, ...] = ()
    balance_work_environments: bool = False
    balance_sources: bool = True
    city_aliases: bool = False
    source_swap_min_pool: int = 10
    source_swap_penalty: float = 5.0

    @property
    def max_per_source(self) -> int:
        return max(1, math.ceil(self.target_count * self.max_source_fraction))


def allocate_quotas(target_count: int, keys: Sequence[str]) -> Dict[str, int]:
    """
    Split target_count across keys; earlier keys receive the remainder.

    >>> allocate_quotas(5, ["berlin", "madrid"])
    {'berlin': 3, 'madrid': 2}
    """
    if not keys:
        return {}
    base, remainder = divmod(target_count, len(keys))
    return {key: base + (1 if i < remainder else 0) for i, key in enumerate(keys)}


def _unique_cities(cities: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for c in cities:
        n = normalize_city(c)
        if n and n not in seen:
            seen.append(n)
    return seen


def _bucket_for(candidate: MatchCandidate, cities: Sequence[str], aliases: bool) -> Optional[str]:
    city = normalize_city(candidate.posting.city)
    if not city:
        return AGNOSTIC
    if city in cities:
        return city
    if aliases:
        canon = canonical_city(city)
        for target in cities:
            if canonical_city(target) == canon:
                return target
    return None


class _Picker:
    """Tracks picks and the soft source / work-environment constraints."""

    def __init__(self, config: DistributionConfig):
        self.config = config
        self.picked: List[MatchCandidate] = []
        self.picked_hashes = set()
        self.source_counts: Counter = Counter()
        self.env_counts: Counter = Counter()
        envs = [normalize_text(e) for e in config.target_work_environments if normalize_text(e)]
        envs = [e for e in dict.fromkeys(envs) if e != WorkEnvironment.UNCLEAR.value]
        self.env_quota = (
            allocate_quotas(config.target_count, envs)
            if config.balance_work_environments and envs
            else {}
        )

    def _env(self, c: MatchCandidate) -> str:
        return normalize_text(c.posting.work_environment)

    def _fits(self, c: MatchCandidate, check_env: bool, check_source: bool) -> bool:
        if check_source and self.source_counts[c.posting.source] >= self.config.max_per_source:
            return False
        if check_env and self.env_quota:
            env = self._env(c)
            if env in self.env_quota:
                if self.env_counts[env] >= self.env_quota[env]:
                    return False
            elif env and env != WorkEnvironment.UNCLEAR.value:
                # Declared but not targeted; only taken once env balance is relaxed
                return False
        return True

    def fill(self, pool: Sequence[MatchCandidate], slots: int) -> List[MatchCandidate]:
        taken: List[MatchCandidate] = []
        for check_env, check_source in ((True, True), (False, True), (False, False)):
            for c in pool:
                if len(taken) >= slots:
                    return taken
                if c.job_hash in self.picked_hashes:
                    continue
                if not self._fits(c, check_env, check_source):
                    continue
                self._take(c)
                taken.append(c)
        return taken

    def _take(self, c: MatchCandidate):
        self.picked.append(c)
        self.picked_hashes.add(c.job_hash)
        self.source_counts[c.posting.source] += 1
        self.env_counts[self._env(c)] += 1


def select_diverse(
    candidates: Sequence[MatchCandidate],
    config: DistributionConfig,
) -> List[MatchCandidate]:
    """
    Select up to `config.target_count` candidates honoring diversity constraints.

    Args:
        candidates: Candidates ranked best-first
        config: Distribution settings

    Returns:
        Selected candidates (copies, with selection reasons), ranked best-first
    """
    if config.target_count <= 0 or not candidates:
        return []

    picker = _Picker(config)
    reasons: Dict[str, str] = {}
    buckets: Dict[str, Optional[str]] = {}
    cities = _unique_cities(config.target_cities)

    if config.balance_cities and cities:
        quotas = allocate_quotas(config.target_count, cities)
        by_city: Dict[str, List[MatchCandidate]] = {c: [] for c in cities}
        agnostic: List[MatchCandidate] = []
        for cand in candidates:
            bucket = _bucket_for(cand, cities, config.city_aliases)
            buckets[cand.job_hash] = bucket
            if bucket == AGNOSTIC:
                agnostic.append(cand)
            elif bucket is not None:
                by_city[bucket].append(cand)

        for city in cities:
            taken = picker.fill(by_city[city], quotas[city])
            for i, cand in enumerate(taken, 1):
                reasons[cand.job_hash] = f"Top pick for {city.title()} ({i}/{quotas[city]})"
            if len(taken) < quotas[city]:
                logger.debug(
                    "City quota not met",
                    city=city,
                    quota=quotas[city],
                    filled=len(taken),
                )

        shortfall = config.target_count - len(picker.picked)
        if shortfall > 0 and agnostic:
            for cand in picker.fill(agnostic, shortfall):
                reasons[cand.job_hash] = "Location-flexible pick"
    else:
        for i, cand in enumerate(picker.fill(candidates, config.target_count), 1):
            reasons[cand.job_hash] = f"Top pick ({i}/{config.target_count})"

    selected = [
        replace(c, reason=f"{reasons[c.job_hash]}: {c.reason}" if c.reason else reasons[c.job_hash])
        for c in picker.picked
    ]

    if config.balance_sources:
        selected = _swap_for_source_diversity(selected, candidates, config, buckets)

    return rank(selected)


def _swap_for_source_diversity(
    selected: List[MatchCandidate],
    candidates: Sequence[MatchCandidate],
    config: DistributionConfig,
    buckets: Dict[str, Optional[str]],
) -> List[MatchCandidate]:
    sources = {c.posting.source for c in selected}
    if len(sources) != 1:
        return selected

    only = next(iter(sources))
    picked = {c.job_hash for c in selected}
    others = [c for c in candidates if c.job_hash not in picked and c.posting.source != only]
    if len(others) < config.source_swap_min_pool:
        return selected

    # Lowest-scoring pick first; a replacement must keep the city quota intact
    for victim in reversed(rank(selected)):
        bucket = buckets.get(victim.job_hash)
        for replacement in others:
            if buckets and buckets.get(replacement.job_hash) != bucket:
                continue
            swapped = replace(
                replacement,
                score=max(0.0, round(replacement.score - config.source_swap_penalty, 2)),
                reason=f"Swapped in for source diversity: {replacement.reason}",
            )
            logger.debug(
                "Source diversity swap",
                removed=victim.job_hash,
                added=replacement.job_hash,
                source=replacement.posting.source,
            )
            return [swapped if c.job_hash == victim.job_hash else c for c in selected]

    return selected
