"""Observability API routes."""

from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import parse_timestamp


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/messages")
    async def get_messages(
        since: str | None = Query(None, description="ISO timestamp filter"),
        facility: str | None = Query(None, description="Filter by facility"),
        topic: str | None = Query(None, description="Filter by topic"),
        type: str | None = Query(None, description="Filter by message type"),
        agent_id: str | None = Query(None, description="Filter by agent"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get break room messages, oldest first."""
        try:
            since_dt = None
            if since:
                try:
                    since_dt = parse_timestamp(since)
                except ValueError:
                    raise HTTPException(status_code=400, detail="Invalid since timestamp format")

            messages = app.break_room.get_messages(
                since=since_dt,
                facility=facility,
                topic=topic,
                type=type,
                agent_id=agent_id,
                limit=limit,
            )
            return [m.to_dict() for m in messages]

        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/threads")
    async def get_threads(
        facility: str | None = Query(None, description="Filter by facility"),
        resolved: bool | None = Query(None, description="Filter by resolution"),
        limit: int = Query(10, ge=1, le=1000),
    ) -> list[dict]:
        """Get discussion threads, most recently active first."""
        try:
            threads = app.break_room.get_active_threads(facility, resolved, limit)
            return [t.to_dict() for t in threads]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/observations")
    async def get_observations(
        facility: str | None = Query(None, description="Filter by facility"),
        type: str | None = Query(None, description="Filter by observation type"),
        severity: str | None = Query(None, description="Filter by severity"),
        limit: int = Query(50, ge=1, le=1000),
    ) -> list[dict]:
        """Get shared observations, most severe first."""
        try:
            observations = app.break_room.get_observations(
                facility=facility,
                type=type,
                severity=severity,
                limit=limit,
            )
            return [o.to_dict() for o in observations]
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
