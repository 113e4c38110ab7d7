"""MCP tool handlers for snapshot sync.

Defines two tools:

- ``snapshot_sync`` -- run one sync (direction optional, default auto).
- ``snapshot_sync_status`` -- show device id, last sync time and the
  tracked files.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...sync.engine import SyncCoordinator
from ...sync.models import SyncDirection, SyncOutcome
from ...sync.reporter import (
    format_sync_result,
    format_sync_status,
    result_to_json,
)
from .errors import CONNECTIVITY_ACTION, build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_DIRECTIONS = [d.value for d in SyncDirection]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_direction(value: Any) -> SyncDirection:
    """Parse the ``direction`` tool argument.

    Raises:
        ValueError: If *value* is not one of auto, upload, download.
    """
    if value is None or value == "":
        return SyncDirection.AUTO
    if not isinstance(value, str) or value.lower() not in _DIRECTIONS:
        raise ValueError(
            f"Invalid direction {value!r}. Expected one of: {', '.join(_DIRECTIONS)}"
        )
    return SyncDirection(value.lower())


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_snapshot_sync(
    coordinator: SyncCoordinator, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``snapshot_sync`` tool."""
    direction = parse_direction(args.get("direction"))
    result = await coordinator.sync(direction)

    if result.outcome is SyncOutcome.BUSY:
        return build_error_response(
            "sync_busy",
            result.message,
            "Wait for the running sync to finish, then retry.",
        )
    if result.outcome is SyncOutcome.NOT_INITIALIZED:
        return build_error_response(
            "connection_error", result.message, CONNECTIVITY_ACTION
        )

    # A partial sync is still reported as a result, not a tool error
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_result(result))
        ],
        structuredContent=result_to_json(result),
        isError=result.outcome is SyncOutcome.FAILED,
    )


async def _handle_snapshot_sync_status(
    coordinator: SyncCoordinator, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``snapshot_sync_status`` tool."""
    status = await coordinator.get_status()
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_status(status))
        ],
        structuredContent=status,
    )


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="snapshot_sync",
            description=(
                "Synchronize the local application snapshot with the S3 "
                "bucket. By default the direction is chosen from content "
                "hashes; pass direction=upload or direction=download to "
                "force it. Whole-snapshot last-writer-wins, no merge. A "
                "failed write of the shared sync-metadata object is listed "
                "in errors and makes the result partial."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "direction": {
                        "type": "string",
                        "enum": _DIRECTIONS,
                        "default": "auto",
                        "description": "Sync direction (auto, upload, download)",
                    },
                },
                "required": [],
            },
        ),
        handler=_handle_snapshot_sync,
    ),
    ToolSpec(
        tool=types.Tool(
            name="snapshot_sync_status",
            description=(
                "Show local sync state -- device id, last sync time, "
                "tracked files and data hash."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
        ),
        handler=_handle_snapshot_sync_status,
    ),
]

SYNC_TOOLS: list[types.Tool] = [spec.tool for spec in SYNC_SPECS]
