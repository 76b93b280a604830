"""
Gmail endpoints
===============

- ``GET  /api/gmail/auth``      consent URL for connecting an account
- ``POST /api/gmail/auth``      authorization code -> tokens + account email
- ``GET  /api/gmail/callback``  OAuth redirect target, forwards to the builder
- ``POST /api/gmail/proxy``     runs one Gmail action with the caller's token

The proxy keeps Gmail calls server side. Gmail errors keep their status code,
so an expired token reaches the tool family as HTTP 401.
"""

import asyncio
from urllib.parse import quote

import aiohttp
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse
from opentelemetry import trace

from apps.studio.backend import settings
from apps.studio.backend.api.v1.dependencies.clients import (
    get_gmail_client,
    get_oauth_client,
    get_oauth_config,
)
from apps.studio.backend.api.v1.schemas.gmail import (
    AuthUrlResponse,
    CodeExchangeRequest,
    ProxyRequest,
    TokenResponse,
)
from apps.studio.backend.services.gmail_api import GmailApiClient, GmailApiError
from apps.studio.backend.services.google_oauth import (
    GoogleOAuthClient,
    GoogleOAuthConfig,
    OAuthExchangeError,
)
from src.enums.monitoring import SpanAttr
from utils.ml_logging import get_logger

logger = get_logger("api.v1.gmail")
tracer = trace.get_tracer(__name__)

router = APIRouter(prefix="/gmail")


@router.get("/auth", response_model=AuthUrlResponse, response_model_by_alias=True)
async def get_auth_url(config: GoogleOAuthConfig = Depends(get_oauth_config)):
    if not config.is_configured:
        return JSONResponse(
            {"error": "Google OAuth not configured. Set GOOGLE_CLIENT_ID in .env"},
            status_code=500,
        )
    return AuthUrlResponse(auth_url=config.authorize_url())


@router.post("/auth", response_model=TokenResponse)
async def exchange_code(
    body: CodeExchangeRequest,
    config: GoogleOAuthConfig = Depends(get_oauth_config),
    client: GoogleOAuthClient = Depends(get_oauth_client),
):
    if not config.client_id or not config.client_secret:
        return JSONResponse({"error": "Google OAuth not configured"}, status_code=500)
    try:
        tokens = await client.exchange_code(body.code)
    except OAuthExchangeError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"OAuth token exchange error: {e}")
        return JSONResponse({"error": "Failed to exchange authorization code"}, status_code=500)
    return TokenResponse(**tokens)


@router.get("/callback")
async def oauth_callback(code: str = None, error: str = None):
    if error:
        target = f"{settings.BUILDER_PATH}?gmail_error={quote(error, safe='')}"
    elif not code:
        target = f"{settings.BUILDER_PATH}?gmail_error=no_code"
    else:
        target = f"{settings.BUILDER_PATH}?gmail_code={quote(code, safe='')}"
    return RedirectResponse(target, status_code=307)


@router.post("/proxy")
async def gmail_proxy(body: ProxyRequest, gmail: GmailApiClient = Depends(get_gmail_client)):
    if not body.access_token:
        return JSONResponse({"error": "No access token provided"}, status_code=401)

    with tracer.start_as_current_span(
        "api.gmail.proxy", attributes={SpanAttr.TOOL_ACTION.value: body.action}
    ) as span:
        try:
            return await gmail.run(body.action, body.access_token, body.params)
        except GmailApiError as e:
            span.set_attribute(SpanAttr.ERROR_MESSAGE.value, str(e))
            logger.warning(f"Gmail action {body.action} failed ({e.status}): {e}")
            return JSONResponse({"error": str(e)}, status_code=e.status)
        except KeyError as e:
            return JSONResponse({"error": f"Missing parameter: {e.args[0]}"}, status_code=400)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Gmail proxy error: {e}")
            return JSONResponse({"error": str(e) or "Gmail API error"}, status_code=500)
