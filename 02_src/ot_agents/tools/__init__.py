"""Tool-call server."""

from .mcp_server import ToolCallError, create_mcp_server, create_session_manager
from .schemas import BREAK_ROOM_TOOL_SCHEMAS, FACILITY_TOOL_SCHEMAS, GLOBAL_TOOL_SCHEMAS
from .server import ToolDefinition, ToolServer, facility_prefix

__all__ = [
    "BREAK_ROOM_TOOL_SCHEMAS",
    "FACILITY_TOOL_SCHEMAS",
    "GLOBAL_TOOL_SCHEMAS",
    "ToolCallError",
    "ToolDefinition",
    "ToolServer",
    "create_mcp_server",
    "create_session_manager",
    "facility_prefix",
]
