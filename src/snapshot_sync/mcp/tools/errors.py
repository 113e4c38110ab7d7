"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so that agents can
recover from errors without human intervention.
"""

import mcp.types as types

# Corrective actions shared by the sync tools
CONNECTIVITY_ACTION = (
    "Check SNAPSHOT_SYNC_BUCKET, SNAPSHOT_SYNC_ENDPOINT and the access keys, "
    "then retry."
)
RETRY_ACTION = "Retry later; if the problem persists, check the server log."


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (validation_error, sync_busy,
            sync_failed, connection_error, server_error, unknown_tool)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("sync_busy", "Sync already in progress", "Wait and retry.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )
