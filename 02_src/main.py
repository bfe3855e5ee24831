"""Main entry point for the OT assurance agent layer."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from ot_agents.api import create_fastapi_app
from ot_agents.app import Application
from ot_agents.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))
    setup_logging(os.getenv("LOG_LEVEL"))

    app = create_fastapi_app(Application())

    # Run with uvicorn
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
