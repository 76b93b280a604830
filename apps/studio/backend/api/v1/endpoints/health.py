import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from apps.studio.backend import settings
from apps.studio.backend.api.v1.schemas.health import (
    HealthResponse,
    ReadinessResponse,
    ServiceCheck,
)
from utils.ml_logging import get_logger

logger = get_logger("health")

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health():
    """
    Basic health check endpoint - always returns 200 if server is running.
    """
    return HealthResponse(status="healthy")


@router.get("/readiness", response_model=ReadinessResponse)
async def readiness(request: Request):
    """
    Configuration and dependency readiness. Returns 503 when something the
    voice session needs is missing.
    """
    checks = [
        ServiceCheck(
            component="http_session",
            status="healthy" if getattr(request.app.state, "http_session", None) else "unhealthy",
        ),
        ServiceCheck(
            component="openai",
            status="healthy" if settings.OPENAI_API_KEY else "unhealthy",
            error=None if settings.OPENAI_API_KEY else "OPENAI_API_KEY not set",
        ),
        ServiceCheck(
            component="google_oauth",
            status="healthy" if settings.GOOGLE_CLIENT_ID else "not_configured",
        ),
    ]

    store = getattr(request.app.state, "store", None)
    if store is not None and hasattr(store, "ping"):
        try:
            ok = await asyncio.wait_for(asyncio.to_thread(store.ping), timeout=2.0)
            checks.append(ServiceCheck(component="redis", status="healthy" if ok else "unhealthy"))
        except (RedisError, asyncio.TimeoutError) as e:
            logger.warning(f"Redis readiness check failed: {e}")
            checks.append(ServiceCheck(component="redis", status="unhealthy", error=str(e)))

    degraded = any(c.status == "unhealthy" for c in checks)
    response = ReadinessResponse(status="degraded" if degraded else "ready", checks=checks)
    if degraded:
        return JSONResponse(response.model_dump(), status_code=503)
    return response
