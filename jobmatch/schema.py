"""
Boundary validation for user and posting records.

Raw dictionaries from profile storage and ingestion are checked here and
converted into typed records, so the pipeline itself never branches on
unexpected shapes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError
from .models import JobPosting, Tier, UserPreferences, WorkEnvironment
from .normalize import compute_job_hash, normalize_city, normalize_work_environment

REQUIRED_POSTING_FIELDS = ["company", "title"]
OPTIONAL_POSTING_STR_FIELDS = [
    "city",
    "location",
    "source",
    "description",
    "experience_level",
    "work_environment",
    "job_hash",
]
USER_LIST_FIELDS = ["career_paths", "skills", "industries", "languages"]
WORK_ENVIRONMENTS = {e.value for e in WorkEnvironment}
MAX_TARGET_CITIES = 3


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_str_list(v: Any) -> bool:
    return isinstance(v, (list, tuple)) and all(isinstance(i, str) for i in v)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def validate_user(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []

    email = data.get("email")
    if not _is_non_empty_str(email):
        errors.append("Missing required field: email")
    elif "@" not in email:
        errors.append("Field 'email' must be an email address")

    cities = data.get("target_cities")
    if not _is_str_list(cities) or not [c for c in cities if c.strip()]:
        errors.append("Field 'target_cities' must list at least one city")
    elif len(cities) > MAX_TARGET_CITIES:
        errors.append(f"Field 'target_cities' allows at most {MAX_TARGET_CITIES} cities")

    for f in USER_LIST_FIELDS:
        if f in data and data[f] is not None and not _is_str_list(data[f]):
            errors.append(f"Field '{f}' must be a list of strings if provided")

    tier = data.get("tier", Tier.FREE.value)
    if tier not in {t.value for t in Tier}:
        errors.append("Field 'tier' must be 'free' or 'premium'")

    env = data.get("work_environment")
    if env is not None and env not in WORK_ENVIRONMENTS:
        errors.append(f"Field 'work_environment' must be one of {sorted(WORK_ENVIRONMENTS)}")

    envs = data.get("work_environments")
    if envs is not None:
        if not _is_str_list(envs):
            errors.append("Field 'work_environments' must be a list of strings if provided")
        elif any(e not in WORK_ENVIRONMENTS for e in envs):
            errors.append(f"Field 'work_environments' values must be in {sorted(WORK_ENVIRONMENTS)}")

    return errors


def validate_posting(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []

    for f in REQUIRED_POSTING_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_POSTING_STR_FIELDS:
        if f in data and data[f] is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in ("categories", "language_requirements"):
        if f in data and data[f] is not None and not _is_str_list(data[f]):
            errors.append(f"Field '{f}' must be a list of strings if provided")

    if "visa_friendly" in data and data["visa_friendly"] not in (None, True, False):
        errors.append("Field 'visa_friendly' must be a boolean if provided")

    if data.get("posted_at"):
        try:
            parse_timestamp(data["posted_at"])
        except (TypeError, ValueError):
            errors.append("Field 'posted_at' must be an ISO-8601 timestamp")

    return errors


def _str_tuple(values: Any) -> Tuple[str, ...]:
    return tuple(v.strip() for v in (values or []) if v and v.strip())


def parse_user(data: Dict[str, Any]) -> UserPreferences:
    errors = validate_user(data)
    if errors:
        raise ValidationError(f"Invalid user record: {data.get('email')}", errors)

    env = data.get("work_environment")
    return UserPreferences(
        email=data["email"].strip().lower(),
        target_cities=_str_tuple(data["target_cities"]),
        career_paths=_str_tuple(data.get("career_paths")),
        entry_level_preference=data.get("entry_level_preference") or "entry-level",
        work_environment=env,
        work_environments=_str_tuple(data.get("work_environments")),
        visa_status=data.get("visa_status"),
        tier=Tier(data.get("tier", Tier.FREE.value)),
        skills=_str_tuple(data.get("skills")),
        industries=_str_tuple(data.get("industries")),
        company_size=data.get("company_size"),
        career_keywords=data.get("career_keywords"),
        languages=_str_tuple(data.get("languages")),
    )


def parse_posting(data: Dict[str, Any]) -> JobPosting:
    errors = validate_posting(data)
    if errors:
        raise ValidationError(f"Invalid posting: {data.get('title')}", errors)

    location = data.get("location") or ""
    city = data.get("city")
    job_hash = data.get("job_hash") or compute_job_hash(data["title"], data["company"], location or city)
    return JobPosting(
        job_hash=job_hash,
        title=data["title"].strip(),
        company=data["company"].strip(),
        city=normalize_city(city) or None,
        location=location,
        categories=frozenset(c.strip().lower() for c in (data.get("categories") or []) if c.strip()),
        source=(data.get("source") or "unknown").strip().lower(),
        posted_at=parse_timestamp(data.get("posted_at")),
        work_environment=normalize_work_environment(data.get("work_environment")),
        visa_friendly=data.get("visa_friendly"),
        description=data.get("description") or "",
        experience_level=data.get("experience_level"),
        language_requirements=frozenset(_str_tuple(data.get("language_requirements"))),
    )
