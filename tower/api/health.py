"""Liveness endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from tower.database import health_check

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request) -> dict:
    """Report service status and, for the Postgres backend, database reachability."""
    settings = request.app.state.settings
    if settings.storage_backend == "postgres":
        database = await health_check()
    else:
        database = True

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage_backend": settings.storage_backend,
        "database": database,
    }
