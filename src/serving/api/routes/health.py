"""
Health Check Endpoints

Database connectivity and process memory for load balancers and uptime
monitors, plus the Prometheus scrape endpoint.
"""

import time
from datetime import datetime
from typing import Dict

import psutil
import structlog
from fastapi import APIRouter, Depends, Request, Response

from src.config import Settings
from src.database.connection import get_database
from src.database.models import utcnow
from src.metrics import render_latest
from src.serving.api.dependencies import get_app_settings
from src.serving.api.schemas import CamelModel

logger = structlog.get_logger(__name__)
router = APIRouter()


class HealthChecks(CamelModel):
    database: str = "unknown"
    memory: str = "unknown"


class HealthResponse(CamelModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    uptime: float
    checks: HealthChecks
    response_time: float


def memory_status(rss_mb: float, settings: Settings) -> str:
    """Classify resident memory against the configured thresholds."""
    monitoring = settings.monitoring
    if rss_mb > monitoring.memory_critical_mb:
        return "unhealthy"
    if rss_mb < monitoring.memory_warning_mb:
        return "healthy"
    return "warning"


def process_memory_mb() -> float:
    return psutil.Process().memory_info().rss / (1024 * 1024)


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """
    Overall status is ``healthy`` (200) or ``degraded`` (503).

    Degraded when the database is unreachable or resident memory is above
    the critical threshold; the warning band only flags the memory check.
    """
    start = time.perf_counter()
    status = "healthy"
    checks = HealthChecks()

    db_health = await get_database(request).check_health()
    checks.database = db_health["status"]
    if checks.database != "healthy":
        status = "degraded"

    rss_mb = process_memory_mb()
    checks.memory = memory_status(rss_mb, settings)
    if checks.memory == "unhealthy":
        status = "degraded"

    started_at = getattr(request.app.state, "started_at", None) or time.monotonic()
    if status != "healthy":
        response.status_code = 503
        logger.warning("Health check degraded", database=checks.database, memory=checks.memory, rss_mb=round(rss_mb, 1))

    return HealthResponse(
        status=status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=utcnow(),
        uptime=round(time.monotonic() - started_at, 3),
        checks=checks,
        response_time=round((time.perf_counter() - start) * 1000, 2),
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is serving requests."""
    return {"status": "alive"}


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """Prometheus exposition of this worker's collectors."""
    body, content_type = render_latest()
    return Response(content=body, media_type=content_type)
