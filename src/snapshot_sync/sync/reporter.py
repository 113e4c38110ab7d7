"""Sync result formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_result`` -- post-sync summary.
- ``format_sync_status`` -- local sync state overview.
- ``result_to_json`` -- structured dict for MCP tool output and ``--json``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import SyncResult

# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_sync_result(result: SyncResult) -> str:
    """Format a sync result as human-readable text.

    The error section is only included when there is at least one error.

    Args:
        result: The sync result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [result.message]

    if result.direction is not None:
        lines.append(f"Direction: {result.direction.value}")
        lines.append(
            f"Uploaded: {result.uploaded_files}, "
            f"downloaded: {result.downloaded_files}"
        )

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  {error}")

    return "\n".join(lines)


def format_sync_status(status: dict[str, Any]) -> str:
    """Format the dict returned by ``SyncCoordinator.get_status()``."""
    lines = [
        f"Device: {status.get('device_id') or 'unknown'}",
        f"Last sync: {status.get('last_sync_time') or 'never'}",
    ]
    data_hash = status.get("data_hash")
    lines.append(f"Data hash: {data_hash[:12] if data_hash else 'N/A'}")
    if status.get("in_progress"):
        lines.append("A sync is currently running")

    files = status.get("files") or []
    if files:
        lines.append(f"Tracked files ({len(files)}):")
        for name in files:
            lines.append(f"  {name}")
    else:
        lines.append("Tracked files: none")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict[str, Any]:
    """Convert a sync result to a JSON-serialisable dict.

    Field names use camelCase to match the metadata wire format.
    """
    return {
        "success": result.success,
        "outcome": result.outcome.value,
        "message": result.message,
        "direction": result.direction.value if result.direction else None,
        "uploadedFiles": result.uploaded_files,
        "downloadedFiles": result.downloaded_files,
        "errors": list(result.errors),
    }
