"""CLI for the scheduled venue refresh run.

Usage::

    python -m venue_refresh.cli run
    python -m venue_refresh.cli run --tier1-only --dry-run
    python -m venue_refresh.cli run --full --date 2026-03-01
    python -m venue_refresh.cli status

Exit codes: 0 completed (or skipped because another run holds the lock),
1 failed, 2 configuration error, 143 terminated by SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys
from datetime import date

from venue_refresh.utils.errors import ConfigurationError, VenueRefreshError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_TERMINATED = 143


def _install_sigterm_handler() -> None:
    """Turn SIGTERM into task cancellation so ``finally`` blocks release the lock."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    if task is None:
        return
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGTERM, task.cancel)


async def _handle_run(args: argparse.Namespace) -> int:
    """Execute one pipeline run and print its summary."""
    from venue_refresh.config.settings import Settings
    from venue_refresh.main import build_pipeline
    from venue_refresh.models.pipeline import RunOptions, RunStatus

    _install_sigterm_handler()
    app_settings = Settings()
    try:
        components = build_pipeline(app_settings, config_path=args.config)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    options = RunOptions(
        run_date=args.date,
        tier1_only=args.tier1_only,
        dry_run=args.dry_run,
        full=args.full,
        refetch=args.refetch,
    )
    try:
        summary = await components.pipeline.run(options)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except VenueRefreshError as exc:
        print(f"Run failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except asyncio.CancelledError:
        print("Terminated; lock released.", file=sys.stderr)
        return EXIT_TERMINATED
    finally:
        await components.aclose()

    if args.json:
        print(summary.model_dump_json(indent=2))
    else:
        print(summary.format_text())
    return EXIT_FAILED if summary.status is RunStatus.FAILED else EXIT_OK


async def _handle_status(args: argparse.Namespace) -> int:
    """Print the last run record and the current lock holder."""
    from venue_refresh.config.settings import Settings
    from venue_refresh.main import build_pipeline

    try:
        components = build_pipeline(Settings(), config_path=args.config)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        pipeline = components.pipeline
        record = pipeline.status()
        holder = pipeline.lock.holder(pipeline.name)
    finally:
        await components.aclose()

    if args.json:
        payload = {
            "last_run": json.loads(record.model_dump_json()) if record else None,
            "lock": json.loads(holder.model_dump_json()) if holder else None,
        }
        print(json.dumps(payload, indent=2))
        return EXIT_OK

    if record is None:
        print("No run recorded yet.")
    else:
        finished = record.finished_at.isoformat() if record.finished_at else "-"
        print(f"Last run: {record.run_date.isoformat()} {record.status.value} (finished {finished})")
        if record.summary is not None:
            print(record.summary.format_text())
    if holder is None:
        print("Lock: free")
    else:
        print(f"Lock: held by {holder.holder} (pid {holder.pid}) since {holder.acquired_at.isoformat()}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the refresh CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m venue_refresh.cli",
        description="Refresh venue content and extract operating hours.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: CONFIG_PATH or config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Refresh commands")

    run_parser = subparsers.add_parser("run", help="Run the refresh pipeline once")
    run_parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today (default: today in TIMEZONE)",
    )
    run_parser.add_argument(
        "--tier1-only",
        action="store_true",
        help="Regex extraction only; never call an LLM",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Extract but do not write results",
    )
    run_parser.add_argument(
        "--full",
        action="store_true",
        help="Extract every current venue, not just new/changed ones",
    )
    run_parser.add_argument(
        "--refetch",
        action="store_true",
        help="Re-fetch venues already captured today",
    )
    run_parser.add_argument("--json", action="store_true", help="Print the summary as JSON")

    status_parser = subparsers.add_parser("status", help="Show the last run and lock holder")
    status_parser.add_argument("--json", action="store_true", help="Print as JSON")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the refresh tool."""
    from venue_refresh.config.settings import Settings
    from venue_refresh.utils.logging import configure_logging

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_FAILED)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    if args.command == "run":
        exit_code = asyncio.run(_handle_run(args))
    elif args.command == "status":
        exit_code = asyncio.run(_handle_status(args))
    else:
        parser.print_help()
        exit_code = EXIT_FAILED

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
