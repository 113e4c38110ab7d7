"""Command line interface for snapshot sync.

Subcommands:

- ``sync``   -- run one sync (``--direction auto|upload|download``).
- ``status`` -- show the local sync state.
- ``init``   -- write a starter config file if none exists.

Human-readable output goes to stdout, logs go to stderr. ``--json``
switches stdout to a single JSON document.

Exit codes: 0 when the sync completed, 1 when it finished with errors
(including a failed write of the remote sync metadata), 2 when it did
not run or was aborted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import load_runtime_config
from .config_loader import ensure_config
from .logger import setup_logging
from .sync.engine import SyncCoordinator, create_coordinator
from .sync.models import SyncDirection, SyncOutcome
from .sync.reporter import format_sync_result, format_sync_status, result_to_json

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapshot-sync",
        description="Sync a local application snapshot with an S3-compatible bucket",
    )
    parser.add_argument("--bucket", help="Override bucket name")
    parser.add_argument("--endpoint", help="Override endpoint URL")
    parser.add_argument("--region", help="Override bucket region")
    parser.add_argument("--prefix", help="Override key prefix")
    parser.add_argument("--store-path", help="Override local store file")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"snapshot-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync_parser = sub.add_parser(
        "sync",
        help="Run one sync",
        description=(
            "Run one sync. A failed write of the remote sync metadata is "
            "reported as an error and makes the result partial (exit 1)."
        ),
    )
    sync_parser.add_argument(
        "--direction",
        choices=[d.value for d in SyncDirection],
        default=SyncDirection.AUTO.value,
        help="Force a direction (default: auto)",
    )

    sub.add_parser("status", help="Show local sync state")
    sub.add_parser("init", help="Write a starter config file")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key in ("bucket", "endpoint", "region", "store_path"):
        value = getattr(args, key)
        if value:
            overrides[key] = value
    if args.prefix is not None:
        overrides["prefix"] = args.prefix
    if args.debug:
        overrides["debug"] = True
    return overrides


def _emit(args: argparse.Namespace, text: str, payload: dict[str, Any]) -> None:
    if args.as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(text)


async def _run_sync(
    coordinator: SyncCoordinator, args: argparse.Namespace
) -> int:
    result = await coordinator.sync(SyncDirection(args.direction))
    _emit(args, format_sync_result(result), result_to_json(result))
    if result.outcome is SyncOutcome.COMPLETE:
        return EXIT_OK
    if result.outcome is SyncOutcome.PARTIAL:
        return EXIT_PARTIAL
    return EXIT_ERROR


async def _run_status(
    coordinator: SyncCoordinator, args: argparse.Namespace
) -> int:
    status = await coordinator.get_status()
    _emit(args, format_sync_status(status), status)
    return EXIT_OK


async def _run(args: argparse.Namespace) -> int:
    load_dotenv()
    try:
        config, unified, sources = load_runtime_config(_overrides(args))
    except ValueError as exc:
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        logger.error("Configuration error: %s", exc)
        return EXIT_ERROR

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )
    logger.debug("Configuration loaded from: %s", ", ".join(sources))

    coordinator = create_coordinator(config, unified.sync)
    # Status only reads the local store
    if args.command == "status":
        return await _run_status(coordinator, args)

    if not await coordinator.initialize():
        logger.error("Cannot reach bucket %s", config.bucket)
        return EXIT_ERROR
    return await _run_sync(coordinator, args)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``snapshot-sync`` command."""
    args = build_parser().parse_args(argv)

    if args.command == "init":
        setup_logging(mode="cli", debug=args.debug)
        path = ensure_config()
        _emit(args, f"Config file: {path}", {"config_file": str(path)})
        return EXIT_OK

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
