"""
RDC Portal Health Check Endpoints
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from backend.core.config import settings
from backend.database import check_db_connection

logger = logging.getLogger(__name__)


# =============================================================================
# Health Status Models
# =============================================================================


class HealthStatus(str, Enum):
    """Health status values for components and overall system."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Health status for an individual component."""

    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: HealthStatus
    timestamp: str
    components: dict[str, Any]
    version: str


class LivenessResponse(BaseModel):
    status: str


# =============================================================================
# Health Check Functions
# =============================================================================


async def check_database() -> ComponentHealth:
    start_time = time.perf_counter()
    result = await check_db_connection()
    latency = round((time.perf_counter() - start_time) * 1000, 2)
    if result["status"] != "healthy":
        logger.error(f"Database health check failed: {result.get('error')}")
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            latency_ms=latency,
            message=f"Database connection failed: {result.get('error')}",
        )
    return ComponentHealth(status=HealthStatus.HEALTHY, latency_ms=latency, message="Database connection successful")


async def check_redis() -> ComponentHealth:
    """Redis backs rate limiting and the Celery broker; losing it degrades but does not stop the API."""
    start_time = time.perf_counter()
    try:
        redis_client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            await redis_client.ping()
        finally:
            await redis_client.aclose()
    except (aioredis.RedisError, OSError) as e:
        logger.warning(f"Redis health check failed: {e}")
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            message=f"Redis connection failed: {str(e)}",
        )
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        message="Redis connection successful",
    )


def determine_overall_status(components: dict[str, ComponentHealth]) -> HealthStatus:
    """The database is critical; any other problem only degrades."""
    database = components.get("database")
    if database and database.status == HealthStatus.UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if any(component.status != HealthStatus.HEALTHY for component in components.values()):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def _response(components: dict[str, ComponentHealth], response: Response) -> HealthResponse:
    overall = determine_overall_status(components)
    if overall == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components={name: component.model_dump() for name, component in components.items()},
        version=settings.app_version,
    )


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    response_model=HealthResponse,
    summary="Database health",
    responses={503: {"description": "Database unreachable"}},
)
async def health(response: Response) -> HealthResponse:
    return _response({"database": await check_database()}, response)


@router.get("/live", response_model=LivenessResponse, summary="Liveness check")
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check",
    description="Verifies the database and Redis.",
)
async def readiness_check(response: Response) -> HealthResponse:
    db_check, redis_check = await asyncio.gather(check_database(), check_redis())
    return _response({"database": db_check, "redis": redis_check}, response)
