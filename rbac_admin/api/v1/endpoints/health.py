"""
Health Check Endpoints
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog
import time

from rbac_admin.core.config import settings
from rbac_admin.core.database import check_database_health
from rbac_admin.schemas.base import ApiResponse, HealthCheck, HealthStatus

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=ApiResponse[HealthCheck])
async def health_check():
    """
    Database connectivity check

    Returns 503 with a non-zero code when the store is unreachable.
    """
    started = time.perf_counter()
    db_healthy = await check_database_health()
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    overall_status = HealthStatus.HEALTHY if db_healthy else HealthStatus.UNHEALTHY
    health = HealthCheck(
        status=overall_status,
        service=settings.PROJECT_NAME,
        version=settings.VERSION,
        timestamp=datetime.now(timezone.utc),
        checks={
            "database": {
                "status": overall_status.value,
                "response_time_ms": elapsed_ms,
            }
        },
    )

    if not db_healthy:
        logger.error("Health check failed", checks=health.checks)
        body = ApiResponse.fail(503, "Service unhealthy", health)
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    return ApiResponse.ok(health)
