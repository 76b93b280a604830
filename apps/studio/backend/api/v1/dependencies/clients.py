"""
Client Dependency Injection
===========================

Outbound clients are built from the shared ``aiohttp.ClientSession`` created
in the app lifespan. Tests override these with ``app.dependency_overrides``.
"""

import aiohttp
from fastapi import Depends, HTTPException, Request
from openai import AsyncOpenAI

from apps.studio.backend import settings
from apps.studio.backend.services.agent_generator import AgentGenerator
from apps.studio.backend.services.gmail_api import GmailApiClient
from apps.studio.backend.services.google_oauth import GoogleOAuthClient, GoogleOAuthConfig
from apps.studio.backend.services.realtime_sessions import RealtimeSessionMinter


def get_http_session(request: Request) -> aiohttp.ClientSession:
    session = getattr(request.app.state, "http_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="HTTP client not available")
    return session


def get_oauth_config() -> GoogleOAuthConfig:
    return GoogleOAuthConfig(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
        scopes=list(settings.GMAIL_SCOPES),
    )


def get_oauth_client(
    request: Request, config: GoogleOAuthConfig = Depends(get_oauth_config)
) -> GoogleOAuthClient:
    return GoogleOAuthClient(config, get_http_session(request))


def get_gmail_client(request: Request) -> GmailApiClient:
    return GmailApiClient(get_http_session(request))


def get_session_minter(request: Request) -> RealtimeSessionMinter:
    return RealtimeSessionMinter(
        get_http_session(request),
        api_key=settings.OPENAI_API_KEY,
        model=settings.REALTIME_MODEL,
        base_url=settings.OPENAI_BASE_URL,
    )


def get_openai_client(request: Request) -> AsyncOpenAI:
    client = getattr(request.app.state, "openai_client", None)
    if client is None:
        if not settings.OPENAI_API_KEY:
            raise HTTPException(status_code=503, detail="OPENAI_API_KEY is not configured")
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
        request.app.state.openai_client = client
    return client


def get_agent_generator(client: AsyncOpenAI = Depends(get_openai_client)) -> AgentGenerator:
    return AgentGenerator(client, model=settings.AGENT_GENERATION_MODEL)
