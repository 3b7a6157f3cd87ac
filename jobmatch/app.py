import argparse
from pathlib import Path

from . import __version__
from .ai_scorer import build_ai_scorer
from .batch import BatchCoordinator, BatchStatus
from .config import MatchingConfig
from .env import load_env
from .errors import ConfigError, ValidationError
from .locking import SlidingWindowRateLimiter
from .logger import get_logger
from .schema import validate_posting, validate_user
from .storage import MatchStore, load_postings, load_records, load_users


def _require(path_str: str) -> Path:
    path = Path(path_str)
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    return path


def _load_config() -> MatchingConfig:
    try:
        return MatchingConfig.from_env()
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")


def cmd_match(args: argparse.Namespace) -> None:
    config = _load_config()
    if args.workers is not None:
        config = config.with_overrides(max_workers=args.workers)

    try:
        users, user_errors = load_users(_require(args.users))
        postings, posting_errors = load_postings(_require(args.jobs))
    except ValidationError as e:
        raise SystemExit(f"{e}: {'; '.join(e.errors)}")
    for err in user_errors + posting_errors:
        print(f"[skipped] {err}")

    limiter = SlidingWindowRateLimiter(limit=config.ai_requests_per_minute, window=60.0)
    scorer = None if args.no_ai else build_ai_scorer(config, rate_limiter=limiter)
    store = MatchStore(Path(args.db))
    coordinator = BatchCoordinator(store=store, config=config, ai_scorer=scorer)

    outcome = coordinator.run(users, postings)
    if outcome.status == BatchStatus.ALREADY_RUNNING:
        print("A matching run is already in progress.")
        raise SystemExit(3)
    if outcome.status == BatchStatus.NOTHING_TO_DO:
        print("Nothing to do: no eligible users or postings.")
        return

    for u in outcome.users:
        level = int(u.level) if u.level is not None else "-"
        provenance = u.provenance.value if u.provenance else "-"
        print(f"[{u.status.value}] {u.email} results={len(u.matches)} level={level} provenance={provenance}")
    print(
        f"Done. mode={outcome.mode} users={len(outcome.users)} "
        f"persistence_errors={outcome.persistence_errors} elapsed_ms={outcome.elapsed_ms}"
    )
    get_logger().log_metrics_summary()


def cmd_validate(args: argparse.Namespace) -> None:
    if not args.users and not args.jobs:
        raise SystemExit("Provide --users and/or --jobs")

    invalid = 0
    checks = []
    if args.users:
        checks.append(("user", _require(args.users), validate_user))
    if args.jobs:
        checks.append(("posting", _require(args.jobs), validate_posting))

    for kind, path, validator in checks:
        try:
            records = load_records(path)
        except ValidationError as e:
            raise SystemExit(f"{e}: {'; '.join(e.errors)}")
        for i, record in enumerate(records):
            errors = validator(record) if isinstance(record, dict) else ["record must be an object"]
            if errors:
                invalid += 1
                print(f"Invalid {kind}[{i}]:")
                for e in errors:
                    print(f" - {e}")
        print(f"{path}: {len(records)} {kind} records checked")

    if invalid:
        raise SystemExit(2)
    print("Valid")


def cmd_show(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        return
    store = MatchStore(db_path)
    email = args.email.strip().lower()
    rows = store.get_matches(email)
    if not rows:
        print(f"No matches stored for {email}.")
        return
    print(f"Found {len(rows)} matches for {email}:\n")
    for row in rows:
        print(f"Job: {row.job_hash}")
        print(f"  Score: {row.score:.2f}")
        print(f"  Provenance: {row.provenance} (level {row.recovery_level}, {row.confidence} confidence)")
        print(f"  Reason: {row.reason}")
        print(f"  Updated: {row.updated_at}")
        print()


def main():
    # Load .env if present (OPENAI_API_KEY, JOBMATCH_* overrides)
    load_env()
    parser = argparse.ArgumentParser(prog="jobmatch", description="JobMatch: diverse, resilient job matching")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    mat = subparsers.add_parser("match", help="Match users against postings and persist results")
    mat.add_argument("--users", required=True, help="Path to users JSON array")
    mat.add_argument("--jobs", required=True, help="Path to postings JSON array")
    mat.add_argument("--db", default="data/matches.db", help="Path to SQLite database (default: data/matches.db)")
    mat.add_argument("--workers", type=int, help="Worker pool width (overrides JOBMATCH_MAX_WORKERS)")
    mat.add_argument("--no-ai", action="store_true", help="Disable AI scoring even if OPENAI_API_KEY is set")
    mat.set_defaults(func=cmd_match)

    val = subparsers.add_parser("validate", help="Validate users and/or postings JSON files")
    val.add_argument("--users", help="Path to users JSON array")
    val.add_argument("--jobs", help="Path to postings JSON array")
    val.set_defaults(func=cmd_validate)

    shw = subparsers.add_parser("show", help="Show persisted matches for a user")
    shw.add_argument("--db", default="data/matches.db", help="Path to SQLite database (default: data/matches.db)")
    shw.add_argument("--email", required=True, help="User email")
    shw.set_defaults(func=cmd_show)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
