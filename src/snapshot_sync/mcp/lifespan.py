"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_runtime_config
from ..sync.engine import create_coordinator

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Create the SyncCoordinator and test the bucket connection
    - Fail fast if the bucket is unreachable

    Args:
        config_overrides: Optional dict with config values from CLI
            (bucket, endpoint, region, prefix, store_path)

    Yields:
        Dict with 'coordinator' key containing the initialized SyncCoordinator

    Raises:
        RuntimeError: If configuration is invalid or the bucket is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("Snapshot Sync MCP Server starting...")

    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()
        config, unified, sources = load_runtime_config(config_overrides)

        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Bucket: %s (prefix %r)", config.bucket, config.prefix)
        _stderr_print(f"  Bucket: {config.bucket}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure SNAPSHOT_SYNC_BUCKET is set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure SNAPSHOT_SYNC_BUCKET is set."
        ) from e

    logger.info("Validating bucket connection...")
    _stderr_print("  Validating bucket connection...")
    coordinator = create_coordinator(config, unified.sync)
    if not await coordinator.initialize():
        _stderr_print("ERROR: Bucket connection failed.")
        _stderr_print(
            "  Check SNAPSHOT_SYNC_BUCKET, SNAPSHOT_SYNC_ENDPOINT and the access keys."
        )
        raise RuntimeError(
            f"Bucket connection failed for '{config.bucket}'. "
            "Check SNAPSHOT_SYNC_BUCKET, SNAPSHOT_SYNC_ENDPOINT and the access keys."
        )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"coordinator": coordinator}

    logger.info("MCP server shutting down")
    _stderr_print("Snapshot Sync MCP Server shutting down.")
