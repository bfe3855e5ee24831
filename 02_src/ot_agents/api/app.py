"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from ..tools import create_mcp_server, create_session_manager
from .routes import control, facilities, observability, tools


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application around one Application."""
    application = application or Application()
    mcp_sessions = create_session_manager(create_mcp_server(lambda: application.tool_server))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with mcp_sessions.run():
            await application.start()
            yield
            await application.stop()

    fastapi_app = FastAPI(
        title="OT Assurance Agents API",
        description="Agent observation and coordination layer for OT asset assurance",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application
    fastapi_app.state.mcp_sessions = mcp_sessions

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(tools.create_tools_router(application))
    fastapi_app.include_router(facilities.create_facilities_router(application))
    fastapi_app.include_router(observability.create_observability_router(application))
    fastapi_app.include_router(control.create_control_router(application))

    # MCP streamable HTTP, served under /mcp/
    fastapi_app.mount("/mcp", mcp_sessions.handle_request)

    return fastapi_app
