"""Tool-call API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import Application


class ToolCallRequest(BaseModel):
    """Request model for calling a tool."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    """Response model for a tool call."""

    success: bool
    result: Any = None
    error: str | None = None


def create_tools_router(app: Application) -> APIRouter:
    """Create tools router."""
    router = APIRouter(prefix="/api/tools", tags=["tools"])

    @router.get("")
    async def list_tools() -> list[dict]:
        """List every registered tool with its input schema."""
        try:
            return app.tool_server.list_tools()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/call", response_model=ToolCallResponse)
    async def call_tool(request: ToolCallRequest) -> dict:
        """Call a tool. Tool failures are reported in the body, not as HTTP errors."""
        try:
            return await app.tool_server.call_tool(request.name, request.arguments)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
