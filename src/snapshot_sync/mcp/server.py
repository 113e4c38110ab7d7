"""MCP Server for snapshot sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents trigger and inspect snapshot syncs against an S3-compatible bucket.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import setup_logging
from ..sync.engine import SyncCoordinator
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.errors import CONNECTIVITY_ACTION
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("snapshot-sync-mcp")

# Global coordinator instance (initialized in lifespan)
_coordinator: SyncCoordinator | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool
# ---------------------------------------------------------------------------


async def _handle_ping(
    coordinator: SyncCoordinator, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test bucket connectivity."""
    try:
        ok = await run_sync(coordinator.transport.test_connection)
    except Exception as e:
        ok = False
        logger.warning("Ping failed: %s", e)
    if ok:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Snapshot sync MCP server {__version__} connected to the bucket.",
                )
            ]
        )
    return build_error_response(
        "connection_error", "Bucket is not reachable", CONNECTIVITY_ACTION
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test snapshot sync MCP server connectivity to the bucket",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_coordinator() -> SyncCoordinator:
    """Get the global SyncCoordinator instance.

    Raises:
        RuntimeError: If the coordinator is not initialized
    """
    if _coordinator is None:
        raise RuntimeError(
            "SyncCoordinator not initialized. Server lifespan not started."
        )
    return _coordinator


def set_coordinator(coordinator: SyncCoordinator | None) -> None:
    global _coordinator
    _coordinator = coordinator


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    coordinator = get_coordinator()
    try:
        return await get_registry().call_tool(name, arguments, coordinator)
    except ValueError as e:
        # Unknown tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), validates the
    bucket connection via the lifespan manager, and starts the server with
    stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override
            (bucket, endpoint, region, prefix, store_path, log_file)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=log_file)

    registry = ToolRegistry([PING_SPEC] + ALL_SPECS)
    logger.info("Registered %d tools", registry.tool_count())
    set_registry(registry)

    # set_coordinator() is called here rather than inside the lifespan so
    # that `python -m snapshot_sync.mcp.server` updates this module and not
    # a second import of it.
    async with server_lifespan(config_overrides=overrides or None) as ctx:
        set_coordinator(ctx["coordinator"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="snapshot-sync-mcp",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_coordinator(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Snapshot Sync MCP Server - sync a local snapshot with an S3 bucket over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or config.yml)
  snapshot-sync-mcp

  # Override bucket and prefix
  snapshot-sync-mcp --bucket my-bucket --prefix devices/shared

  # Self-hosted S3 (MinIO)
  snapshot-sync-mcp --endpoint http://localhost:9000 --bucket dev

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--bucket",
        help="Override bucket name (takes precedence over SNAPSHOT_SYNC_BUCKET and config files)",
    )
    parser.add_argument(
        "--endpoint",
        help="Override endpoint URL for non-AWS S3 services",
    )
    parser.add_argument("--region", help="Override bucket region")
    parser.add_argument(
        "--prefix",
        help="Override key prefix (an empty string places objects at the bucket root)",
    )
    parser.add_argument("--store-path", help="Override local store file")
    parser.add_argument(
        "--log-file",
        default="/tmp/snapshot-sync-mcp.log",
        help="Log file path (default: /tmp/snapshot-sync-mcp.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"snapshot-sync-mcp version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()

    config_overrides: dict = {}
    for key in ("bucket", "endpoint", "region", "store_path", "log_file"):
        value = getattr(args, key)
        if value:
            config_overrides[key] = value
    if args.prefix is not None:
        config_overrides["prefix"] = args.prefix

    shown = [k for k in config_overrides if k != "log_file"]
    if shown:
        print(f"Config overrides from CLI: {', '.join(shown)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
