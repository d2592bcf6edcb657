"""
btsnap - command-line entry point.

Syncs the contents of a Bigtable instance (typically, a local emulator)
to/from a SQLite file on local disk.

Usage:
    btsnap [--db FILE] [--project P] [--instance I] [--gcp] save|restore|verify

    python -m btsnap.main save

Configuration comes from environment variables (see config.py); flags
override them.

Exit codes:
    0 - success
    1 - the save/restore/verify run failed
    2 - usage error, or the GCP safeguard refused to run

Invariants:
    - Refuses to touch a real instance unless --gcp (or BTSNAP_GCP=true)
      is given; the emulator is the default target
    - The snapshot database is closed on every exit path
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import json_log_formatter

from .config import ToolConfig
from .errors import SyncError
from .snapshot.store import SnapshotStore
from .store.base import TableStore, create_table_store
from .sync import restore, save_all, verify_snapshot

logger = logging.getLogger(__name__)

ACTIONS = ("save", "restore", "verify")
REMOTE_ACTIONS = ("save", "restore")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def setup_logging(config: ToolConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Tool configuration
        verbose: Force DEBUG level
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="btsnap",
        usage="btsnap [--db FILE] [options] restore|save|verify",
        description="Sync the contents of a Bigtable instance to/from a local SQLite file",
    )
    parser.add_argument("--db", help="Target sqlite file to save to or restore from")
    parser.add_argument("--project", help="GCP project to connect to (default: local)")
    parser.add_argument("--instance", help="BigTable instance to connect to (default: local)")
    parser.add_argument(
        "--gcp",
        action="store_true",
        help="Set to connect to real GCP instances (safeguard)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("action", nargs="*", help="'save', 'restore' or 'verify'")
    return parser


def _usage_error(message: str) -> int:
    print(f"btsnap: {message}", file=sys.stderr)
    return EXIT_USAGE


async def run_action(
    action: str,
    config: ToolConfig,
    table_store: TableStore | None = None,
):
    """Open both stores, run one action, and close them again.

    Args:
        action: One of ACTIONS
        config: Tool configuration
        table_store: Optional pre-built store (a Bigtable store is
            created from config otherwise)

    Returns:
        SaveResult, RestoreResult or VerifyResult

    Raises:
        SyncError: If the run fails
    """
    snapshot = SnapshotStore(
        config.db_path,
        busy_timeout_ms=config.snapshot.busy_timeout_ms,
        must_exist=action != "save",
    )
    snapshot.open()
    try:
        if action == "verify":
            return verify_snapshot(snapshot)

        store = table_store or create_table_store(config)
        await store.connect()
        try:
            if action == "save":
                return await save_all(store, snapshot)
            return await restore(store, snapshot, batch_size=config.sync.batch_size)
        finally:
            await store.close()
    finally:
        snapshot.close()


def run(argv: list[str] | None = None, table_store: TableStore | None = None) -> int:
    """Parse arguments and run the requested action.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    if not args.action:
        return _usage_error("must provide an action ('restore' or 'save')")
    if len(args.action) > 1:
        return _usage_error("expected only a single argument")

    action = args.action[0].lower()
    if action not in ACTIONS:
        return _usage_error(f"unrecognized action: {args.action[0]!r}")

    config = ToolConfig.from_env().with_overrides(
        db_path=args.db,
        project=args.project,
        instance=args.instance,
        allow_gcp=args.gcp,
    )

    if action in REMOTE_ACTIONS:
        try:
            config.validate()
        except ValueError as e:
            return _usage_error(str(e))

    setup_logging(config, verbose=args.verbose)
    config.log_config()

    try:
        result = asyncio.run(run_action(action, config, table_store=table_store))
    except SyncError as e:
        logger.error(f"failed to {action}: {e}")
        return EXIT_FAILED

    print(f"{action} completed successfully")
    for table, rows in result.tables.items():
        print(f"  {table}: {rows} rows")
    print(f"  Total: {result.total_rows} rows")
    print(f"  Duration: {result.duration_ms}ms")
    return EXIT_OK


def main() -> None:
    """CLI entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
