"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.scheduler.config import get_settings
from src.scheduler.core.errors import SchedulerError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: pings the document store.

    Returns 200 if the store answers, 503 otherwise.
    """
    checks: dict = {"store": "ok"}
    store = getattr(request.app.state, "meeting_store", None)
    if store is None:
        checks["store"] = "uninitialized"
    else:
        try:
            await store.ping()
        except SchedulerError as e:
            checks["store"] = "error"
            checks["store_error"] = e.message

    healthy = checks["store"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
