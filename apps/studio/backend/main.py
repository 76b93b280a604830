"""
voice_studio.main
=================
Entrypoint that stitches the studio backend together:

• config / CORS
• shared objects on `app.state` (HTTP client session, optional Redis store)
• route registration (v1 router)
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

import aiohttp
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace

from apps.studio.backend import settings
from apps.studio.backend.api.v1.router import v1_router
from src.storage.kv_store import RedisKeyValueStore
from utils.ml_logging import get_logger

logger = get_logger("main")


# --------------------------------------------------------------------------- #
#  Lifecycle Management
# --------------------------------------------------------------------------- #
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create the shared HTTP client session (and the Redis store when
    ``REDIS_HOST`` is set) on startup, and close them on shutdown.
    """
    tracer = trace.get_tracer(__name__)

    with tracer.start_as_current_span("startup-lifespan") as span:
        logger.info("startup…")
        start_time = time.perf_counter()
        span.set_attributes({"service.name": "voice-studio-api", "service.version": "1.0.0"})

        app.state.http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)
        )
        app.state.store = None
        if settings.REDIS_HOST:
            app.state.store = RedisKeyValueStore(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD or None,
                ssl=settings.REDIS_SSL,
            )
            logger.info("Redis store configured")

        elapsed = time.perf_counter() - start_time
        logger.info(f"startup complete in {elapsed:.2f}s")
        span.set_attribute("startup.duration_sec", elapsed)

    yield

    with tracer.start_as_current_span("shutdown-lifespan"):
        logger.info("shutdown…")
        await app.state.http_session.close()
        openai_client = getattr(app.state, "openai_client", None)
        if openai_client is not None:
            await openai_client.close()
        if app.state.store is not None:
            app.state.store.client.close()


# --------------------------------------------------------------------------- #
#  App factory
# --------------------------------------------------------------------------- #
def create_app() -> FastAPI:
    app = FastAPI(
        title="Voice Agent Studio API",
        description="Session credentials and Gmail proxy for realtime voice agents",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )
    app.include_router(v1_router)

    @app.get("/api/info", tags=["System"])
    async def get_system_info():
        return {
            "environment": settings.ENVIRONMENT,
            "debug_mode": settings.DEBUG_MODE,
            "realtime_model": settings.REALTIME_MODEL,
            "gmail_oauth_configured": bool(settings.GOOGLE_CLIENT_ID),
        }

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "apps.studio.backend.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG_MODE,
    )


if __name__ == "__main__":
    main()
