import hashlib
from typing import Optional


def normalize_text(s: Optional[str]) -> str:
    if not s:
        return ""
    return " ".join(s.strip().lower().split())


def normalize_title(title: str) -> str:
    return normalize_text(title)


def normalize_company(company: str) -> str:
    return normalize_text(company)


def normalize_city(city: Optional[str]) -> str:
    return normalize_text(city)


REMOTE_SYNS = {"remote", "fully remote", "remote-first", "work from home", "wfh", "anywhere"}
HYBRID_SYNS = {"hybrid", "flexible", "part-remote", "partly remote"}
ONSITE_SYNS = {"onsite", "on-site", "on site", "office", "in-office", "in office"}


def normalize_work_environment(value: Optional[str]) -> str:
    """Map free-form work-environment strings to remote/hybrid/on-site/unclear."""
    v = normalize_text(value)
    if v in REMOTE_SYNS:
        return "remote"
    if v in HYBRID_SYNS:
        return "hybrid"
    if v in ONSITE_SYNS:
        return "on-site"
    return "unclear"


def compute_job_hash(title: str, company: str, location: Optional[str]) -> str:
    """Content-derived posting identity, stable across re-ingestion."""
    key = "|".join([
        normalize_title(title),
        normalize_company(company),
        normalize_text(location),
    ])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
