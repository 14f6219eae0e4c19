"""Health check API router."""

from datetime import datetime, timezone

from fastapi import APIRouter

from countly_mcp.api.models import HealthResponse
from countly_mcp.infra.config import SERVER_NAME, SERVER_VERSION
from countly_mcp.infra.metrics import get_metrics_response

router = APIRouter()


@router.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check():
    """Combined health check endpoint."""
    return HealthResponse(
        status="ok",
        service=SERVER_NAME,
        version=SERVER_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/health/live", tags=["Health"])
async def liveness_check():
    """Liveness check: the process is up and serving."""
    return {"status": "alive"}


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
