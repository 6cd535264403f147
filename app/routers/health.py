# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from app.dependencies import KeyConfigDep, SupabaseDep
from lib.supabase_client import SupabaseClientError
from lib.utils import ConfigError

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual dependency checks."""
    database: str
    key_issuer: str
    encryption: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness_check(config: KeyConfigDep, store: SupabaseDep):
    """
    Readiness check endpoint.

    Returns whether the service is ready to accept requests.
    Checks database connectivity and that key issuance is configured.
    """
    checks = ChecksResponse(database="unknown", key_issuer="unknown", encryption="unknown")

    # Check database
    try:
        store.ping()
        checks.database = "healthy"
    except SupabaseClientError as e:
        logger.warning(f"Readiness: database check failed: {e.message}")
        checks.database = f"unhealthy: {e.message[:50]}"

    # Check issuer credentials (presence only, no network call)
    try:
        config.require_google_cloud()
        checks.key_issuer = "configured"
    except ConfigError as e:
        checks.key_issuer = f"missing: {', '.join(e.missing)}"

    try:
        config.require_master_key()
        checks.encryption = "configured"
    except ConfigError as e:
        checks.encryption = f"missing: {', '.join(e.missing)}"

    all_healthy = (
        checks.database == "healthy"
        and checks.key_issuer == "configured"
        and checks.encryption == "configured"
    )

    return ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        checks=checks,
        timestamp=_now(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Returns whether the service process is alive.
    Used by Kubernetes/Docker for restart decisions.
    """
    return LivenessResponse(
        status="alive",
        timestamp=_now(),
    )
