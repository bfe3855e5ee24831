"""Control API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class SnapshotResponse(BaseModel):
    """Response model for a saved snapshot."""

    status: str
    snapshot_id: str


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/round")
    async def run_round() -> dict:
        """Run one observation round over every facility."""
        try:
            return await app.observe()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Clear the break room and stored snapshots."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/snapshot", response_model=SnapshotResponse)
    async def save_snapshot() -> dict:
        """Persist the current break room state."""
        try:
            snapshot_id = await app.save_snapshot()
            return {"status": "ok", "snapshot_id": snapshot_id}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
