"""API routes."""

from . import control, facilities, observability, tools

__all__ = ["control", "facilities", "observability", "tools"]
