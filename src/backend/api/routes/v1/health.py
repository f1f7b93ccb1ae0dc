"""
Health check endpoints (v1).

Provides health, readiness, and liveness probes plus the Prometheus scrape
endpoint.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.dependencies import DB, AppSettings
from models.schemas.health import (
    AIHealth,
    AIModels,
    DatabaseHealth,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
)
from utils.db_utils import check_pool_health

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Service status with uptime, active model provider and database pool statistics.",
    tags=["Health"],
)
async def health_check(db: DB, request: Request, settings: AppSettings) -> HealthResponse:
    """Health check endpoint."""
    db_health_data = await check_pool_health(db)
    db_healthy = db_health_data.get("healthy", False)

    started_at = getattr(request.app.state, "started_at", None)
    uptime = time.monotonic() - started_at if started_at is not None else 0.0
    models = settings.active_models

    return HealthResponse(
        status="ok" if db_healthy else "degraded",
        version=settings.app_version,
        uptime_seconds=round(uptime, 3),
        ai=AIHealth(
            provider=settings.ai_provider,
            models=AIModels(router=models["router"], agent=models["agent"]),
        ),
        database=DatabaseHealth(
            healthy=db_healthy,
            pool_size=db_health_data.get("pool_size", 0),
            pool_free=db_health_data.get("free_connections", 0),
            pool_used=db_health_data.get("used_connections", 0),
            error=None if db_healthy else "Database check failed",
        ),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Kubernetes-style readiness probe for load balancer integration.",
    responses={
        503: {
            "description": "Service not ready",
            "content": {"application/json": {"example": {"ready": False, "error": "Database unavailable"}}},
        },
    },
    tags=["Health"],
)
async def readiness_check(db: DB) -> ReadinessResponse | JSONResponse:
    """Kubernetes-style readiness probe."""
    try:
        async with db.acquire(timeout=5.0) as conn:
            await conn.fetchval("SELECT 1")
        return ReadinessResponse(ready=True)
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "error": str(e)},
        )


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Kubernetes-style liveness probe to confirm process is running.",
    tags=["Health"],
)
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe."""
    return LivenessResponse(alive=True)


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
