"""Command-line helpers for running cycles and preparing the key-value store."""

from __future__ import annotations

import argparse
import json
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from .database import get_engine, is_database_configured
from .db_models import Base
from .defaults import DEFAULT_STORE_ENTRIES
from .errors import RoutineNotifierError
from .push.config import get_settings
from .push.utils import configure_logging, logger
from .runner import run_configured_cycle
from .store import get_store, seed_store

configure_logging()

PrintFn = Callable[[str], Any]


def _parse_instant(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise SystemExit(f"Invalid ISO-8601 instant: {value}") from exc


def run(*, at: str | None = None, dry_run: bool = False, print_fn: PrintFn = print) -> int:
    """Run one evaluation cycle and print the response payload."""
    settings = get_settings()
    now = _parse_instant(at)
    try:
        outcome = run_configured_cycle(settings, now=now, send=not dry_run)
    except RoutineNotifierError as exc:
        logger.exception("Evaluation cycle failed")
        print_fn(json.dumps({"error": str(exc)}))
        return 1

    if dry_run:
        if outcome.is_noop:
            print_fn(f"No-op: {outcome.message}")
            return 0
        if not outcome.plan:
            print_fn("Nothing due at this minute.")
        for entry in outcome.plan:
            print_fn(f" - [{entry.id}] {entry.title}: {entry.body}")
        return 0

    print_fn(json.dumps(outcome.to_payload(), indent=2))
    return 0


def init_db(*, print_fn: PrintFn = print) -> int:
    """Create the key-value table if it does not already exist."""
    if not is_database_configured():
        raise SystemExit(
            "ROUTINE_NOTIFIER_DB_URL is not set or ROUTINE_NOTIFIER_STORE is not "
            "'database'; cannot run database commands."
        )
    engine = get_engine()
    if engine is None:
        raise SystemExit("Unable to create engine for configured database URL.")

    Base.metadata.create_all(engine)
    print_fn("Database tables ensured.")
    return 0


def seed(*, source: Path | None = None, print_fn: PrintFn = print) -> int:
    """Write the sample routine (or entries from a JSON file) into the store."""
    if source is not None:
        entries = json.loads(source.read_text(encoding="utf-8"))
        if not isinstance(entries, dict):
            raise SystemExit("Seed file must contain a JSON object of key/value pairs.")
    else:
        entries = DEFAULT_STORE_ENTRIES

    store = get_store(get_settings())
    count = seed_store(store, entries.items())
    logger.bind(count=count).info("Seeded key-value store")
    print_fn(f"Seeded {count} key(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routine-notifier",
        description="Evaluate the active routine and push start/end reminders.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one evaluation cycle.")
    run_parser.add_argument(
        "--at",
        help="Evaluate at this ISO-8601 instant instead of now (naive values are UTC).",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the notification plan without contacting the push gateway.",
    )

    subparsers.add_parser("init-db", help="Create the key-value table.")

    seed_parser = subparsers.add_parser("seed", help="Seed the key-value store.")
    seed_parser.add_argument(
        "--file",
        type=Path,
        help="JSON object of store keys to values (defaults to the sample routine).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "run":
        return run(at=args.at, dry_run=args.dry_run)
    if args.command == "init-db":
        return init_db()
    return seed(source=args.file)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
