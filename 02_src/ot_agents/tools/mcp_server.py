"""MCP protocol adapter over the tool registry."""

import json
from typing import Callable

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from ..logging_config import get_logger
from .server import SERVER_DESCRIPTION, SERVER_NAME, SERVER_VERSION, ToolServer

logger = get_logger(__name__)


class ToolCallError(Exception):
    """A registry call that came back with ``success: False``."""


def create_mcp_server(resolve_tool_server: Callable[[], ToolServer]) -> Server:
    """
    Build an MCP server that lists and calls whatever the registry holds.

    The registry is resolved on every request, so facility tools registered
    after start-up appear in ``tools/list`` without rebuilding the server.
    Failed calls are raised so the SDK reports them with ``isError``.
    """
    server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=SERVER_DESCRIPTION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in resolve_tool_server().tools.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
        result = await resolve_tool_server().call_tool(name, arguments)
        if not result["success"]:
            logger.warning("MCP call to %s failed: %s", name, result["error"], extra={"tool": name})
            raise ToolCallError(result["error"])
        return [types.TextContent(type="text", text=json.dumps(result["result"], default=str))]

    return server


def create_session_manager(server: Server) -> StreamableHTTPSessionManager:
    """Stateless streamable-HTTP transport answering with plain JSON bodies."""
    return StreamableHTTPSessionManager(app=server, json_response=True, stateless=True)
