"""MCP tool handlers for snapshot sync.

This package contains MCP tool implementations that wrap the
SyncCoordinator with async handlers and structured error responses.
"""

from .errors import build_error_response
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS, parse_direction

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # ToolSpec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
    "parse_direction",
]
