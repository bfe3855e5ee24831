"""Facility API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import Application


class FacilityRequest(BaseModel):
    """Request model for adding a facility."""

    name: str
    code: str | None = None
    industry: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class ContextRequest(BaseModel):
    """Request model for replacing parts of a facility's context."""

    context: dict[str, Any]


def create_facilities_router(app: Application) -> APIRouter:
    """Create facilities router."""
    router = APIRouter(prefix="/api/facilities", tags=["facilities"])

    @router.get("")
    async def list_facilities() -> list[dict]:
        """List facilities with their current health."""
        try:
            return [f.to_dict() for f in app.coordinator.facilities.values()]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("", status_code=201)
    async def add_facility(request: FacilityRequest) -> dict:
        """Register a facility and its specialist agents."""
        try:
            facility = await app.add_facility(
                request.name,
                request.code,
                context=request.context,
                industry=request.industry,
            )
            return facility.to_dict()
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.put("/{code}/context")
    async def update_context(code: str, request: ContextRequest) -> dict:
        """Merge new asset context into a facility and its specialists."""
        try:
            facility = app.update_facility_context(code, request.context)
            return facility.to_dict()
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Facility not found: {code}")
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
