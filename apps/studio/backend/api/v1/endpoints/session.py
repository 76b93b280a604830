"""
Realtime session credential endpoint.

``GET /api/session`` returns the OpenAI realtime session object; the browser
or Python client reads the short-lived key from ``client_secret.value``.
"""

import asyncio

import aiohttp
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from opentelemetry import trace

from apps.studio.backend.api.v1.dependencies.clients import get_session_minter
from apps.studio.backend.services.realtime_sessions import (
    RealtimeSessionError,
    RealtimeSessionMinter,
)
from utils.ml_logging import get_logger

logger = get_logger("api.v1.session")
tracer = trace.get_tracer(__name__)

router = APIRouter()


@router.get("/session")
async def create_session(minter: RealtimeSessionMinter = Depends(get_session_minter)):
    with tracer.start_as_current_span("api.session.create") as span:
        try:
            return await minter.create()
        except RealtimeSessionError as e:
            span.set_attribute("error.message", str(e))
            return JSONResponse({"error": str(e)}, status_code=e.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error in /session: {e}")
            return JSONResponse({"error": "Internal Server Error"}, status_code=500)
