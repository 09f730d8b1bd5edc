"""
Health check endpoints for monitoring and orchestration.

Provides:
- Liveness probe: Is the app running?
- Readiness probe: Can the app serve traffic?
- Detailed health check: Status of all dependencies
"""

import time
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text

from app.config import settings
from app.core.cache import cache_manager
from app.core.database import db_manager
from app.models.role import Permission

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health/live")
async def liveness() -> dict:
    """
    Liveness probe.

    Returns:
        200: Application is running
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness() -> JSONResponse:
    """
    Readiness probe.

    Only the database gates readiness: without Redis, permission
    summaries are served uncached.

    Returns:
        200: Ready to serve traffic
        503: Not ready (database unavailable)
    """
    checks = {}
    is_ready = True

    try:
        async with db_manager.session_scope() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        is_ready = False

    try:
        await cache_manager.client.ping()
        checks["redis"] = {"status": "healthy"}
    except Exception as e:
        checks["redis"] = {"status": "degraded", "error": str(e)}

    status_code = status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if is_ready else "not_ready",
            "checks": checks,
        }
    )


@router.get("/health")
async def health() -> dict:
    """
    Detailed health check with dependency status.

    Includes the size of the permission catalog, which is zero until
    the defaults have been seeded.
    """
    checks: dict[str, Any] = {}
    overall_status = "healthy"

    try:
        start = time.perf_counter()
        async with db_manager.session_scope() as db:
            permission_count = await db.scalar(select(func.count()).select_from(Permission))

        checks["database"] = {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
            "permission_count": permission_count,
        }
    except Exception as e:
        checks["database"] = {
            "status": "unhealthy",
            "error": str(e),
        }
        overall_status = "degraded"

    try:
        start = time.perf_counter()
        await cache_manager.client.ping()

        checks["redis"] = {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    except Exception as e:
        checks["redis"] = {
            "status": "unhealthy",
            "error": str(e),
        }
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "environment": settings.environment,
        "rbac": {
            "enabled": settings.rbac_enabled,
            "fail_open": settings.rbac_fail_open,
        },
        "checks": checks,
    }
