"""Command-line entry point for Runstreak."""

import argparse
import fcntl
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from . import __version__
from .analytics import compute_advanced_stats, compute_stats, compute_streak_stats
from .auth import TokenManager
from .config import Config, setup_logging
from .errors import (
    AuthError,
    ClientHttpError,
    ConfigError,
    RateLimitError,
    RunstreakError,
    StorageError,
    SyncLockedError,
    TransientHttpError,
)
from .storage import FileStore, SyncStateManager
from .sync import ActivitySyncEngine, StravaClient

logger = logging.getLogger(__name__)


@contextmanager
def sync_lock(lock_path: Path) -> Iterator[None]:
    """Hold an exclusive lock on the data directory for one sync run.

    Raises:
        SyncLockedError: If another process already holds the lock
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_file = open(lock_path, "w")
    try:
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            raise SyncLockedError(
                f"Another sync is already running (lock held on {lock_path})"
            ) from None
        lock_file.write(str(os.getpid()))
        lock_file.flush()
        yield
    finally:
        lock_file.close()


def cmd_auth(config: Config, code: Optional[str]) -> int:
    store = FileStore()
    tokens = TokenManager.from_config(config, file_store=store)
    try:
        if not code:
            print("Visit this URL to authorize:")
            print(tokens.authorization_url())
            print(
                '\nAfter authorizing, copy the "code" parameter from the redirect '
                "URL and run:\n  runstreak auth YOUR_CODE_HERE"
            )
            return 0
        tokens.exchange_code(code)
        print("Tokens saved successfully. You can now run: runstreak sync")
        return 0
    finally:
        tokens.close()


def cmd_sync(config: Config) -> int:
    store = FileStore()
    tokens = TokenManager.from_config(config, file_store=store)
    try:
        with sync_lock(config.lock_path), StravaClient.from_config(config, tokens) as client:
            engine = ActivitySyncEngine(
                client=client,
                file_store=store,
                sync_state=SyncStateManager(config.sync_state_path, store),
                activities_dir=config.activities_dir,
                page_size=config.page_size,
            )
            print("Starting activity sync...\n")
            stats = engine.sync()
    finally:
        tokens.close()

    print("\n=== Sync Summary ===")
    print(f"Activities saved: {stats.activities_persisted} ({stats.runs_persisted} runs)")
    print(f"Total activities fetched: {stats.activities_fetched}")
    print(f"Pages processed: {stats.pages_processed}")
    if client.last_rate_limit:
        print(f"Rate limit usage: {client.last_rate_limit.usage} / {client.last_rate_limit.limit}")
    return 0


def cmd_status(config: Config) -> int:
    store = FileStore()
    state = SyncStateManager(config.sync_state_path, store).load()

    if state.is_initial:
        print("No sync has been performed yet")
        print("Run: runstreak sync")
        return 0

    watermark = datetime.fromtimestamp(state.last_sync_timestamp, timezone.utc)
    print("=== Sync Status ===")
    print(f"Last sync: {state.last_sync_date}")
    print(f"Newest activity start: {watermark.isoformat()}")
    print(f"Total activities: {state.total_activities}")
    print(f"Last activity ID: {state.last_activity_id}")
    print(f"Activities on disk: {len(store.list_files(config.activities_dir, '.json'))}")
    return 0


def cmd_compute_stats(config: Config) -> int:
    print("Computing statistics from synced activities...\n")
    written = compute_stats(FileStore(), config.activities_dir, config.stats_dir)
    if written:
        print(f"Wrote {len(written)} files to {config.stats_dir}")
    else:
        print("No run activities found. Run: runstreak sync")
    return 0


def cmd_compute_advanced_stats(config: Config) -> int:
    print("Computing advanced statistics from synced activities...\n")
    written = compute_advanced_stats(FileStore(), config.activities_dir, config.stats_dir)
    if written:
        print(f"Wrote {len(written)} files to {config.stats_dir}")
    else:
        print("No run activities found. Run: runstreak sync")
    return 0


def cmd_compute_streak_stats(config: Config) -> int:
    print("Computing streaks from synced activities...\n")
    streaks, consistency = compute_streak_stats(
        FileStore(),
        config.activities_dir,
        config.stats_dir,
        min_runs_per_week=config.min_runs_per_week,
    )
    print(f"Current streak: {streaks.current_streak} days")
    print(f"Longest streak: {streaks.longest_streak} days")
    print(
        f"Consistent weeks (>= {consistency.min_runs_per_week} runs): "
        f"{consistency.total_consistent_weeks}/{consistency.total_weeks}, "
        f"current run {consistency.current_consistency_streak}, "
        f"longest {consistency.longest_consistency_streak}"
    )
    return 0


def cmd_compute_all_stats(config: Config) -> int:
    cmd_compute_stats(config)
    print("")
    cmd_compute_advanced_stats(config)
    print("")
    return cmd_compute_streak_stats(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runstreak",
        description="Sync Strava activities and compute running streaks.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("auth", help="Complete the OAuth flow with Strava.")
    auth.add_argument("code", nargs="?", help="Authorization code from the redirect URL.")
    sub.add_parser("sync", help="Sync new activities from Strava.")
    sub.add_parser("status", help="Show current sync status.")
    sub.add_parser("compute-stats", help="Compute weekly/monthly/yearly statistics.")
    sub.add_parser(
        "compute-advanced-stats",
        help="Compute year-over-year, time-of-day and seasonal statistics.",
    )
    sub.add_parser("compute-streak-stats", help="Compute daily streaks and weekly consistency.")
    sub.add_parser("compute-all-stats", help="Compute all statistics.")
    return parser


def run(argv: Optional[list[str]] = None, config: Optional[Config] = None) -> int:
    """Parse arguments and dispatch. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        if config is None:
            config = Config.from_env()
            setup_logging(args.debug or config.debug_mode)

        if args.command == "auth":
            return cmd_auth(config, args.code)
        if args.command == "sync":
            return cmd_sync(config)
        if args.command == "status":
            return cmd_status(config)
        if args.command == "compute-stats":
            return cmd_compute_stats(config)
        if args.command == "compute-advanced-stats":
            return cmd_compute_advanced_stats(config)
        if args.command == "compute-streak-stats":
            return cmd_compute_streak_stats(config)
        return cmd_compute_all_stats(config)
    except RateLimitError as e:
        _report("Rate limit error", e)
    except AuthError as e:
        _report("Auth error", e)
    except (TransientHttpError, ClientHttpError) as e:
        _report("API error", e)
    except StorageError as e:
        _report("Storage error", e)
    except (ConfigError, SyncLockedError) as e:
        _report("Configuration error", e)
    except RunstreakError as e:
        _report("Error", e)
    return 1


def _report(label: str, error: RunstreakError) -> None:
    logger.debug(f"{label}: {error!r}")
    print(f"{label}: {error}", file=sys.stderr)
    if error.hint:
        print(f"\n{error.hint}", file=sys.stderr)


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
