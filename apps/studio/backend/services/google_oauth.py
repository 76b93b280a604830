"""
Google OAuth helpers for connecting a Gmail account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import urlencode

import aiohttp

from utils.ml_logging import get_logger

logger = get_logger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class OAuthExchangeError(Exception):
    """Google rejected the authorization code."""


@dataclass
class GoogleOAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: List[str] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)

    def authorize_url(self) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(self.scopes),
                "access_type": "offline",
                "prompt": "consent",
            }
        )
        return f"{AUTHORIZE_URL}?{query}"


class GoogleOAuthClient:
    def __init__(self, config: GoogleOAuthConfig, session: aiohttp.ClientSession) -> None:
        self.config = config
        self._session = session

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Trade an authorization code for tokens and look up the account email.

        Returns ``{access_token, refresh_token, expires_in, email}``.
        """
        async with self._session.post(
            TOKEN_URL,
            data={
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.config.redirect_uri,
            },
        ) as resp:
            tokens = await resp.json(content_type=None)

        if tokens.get("error"):
            raise OAuthExchangeError(tokens.get("error_description") or tokens["error"])

        async with self._session.get(
            USERINFO_URL, headers={"Authorization": f"Bearer {tokens['access_token']}"}
        ) as resp:
            user_info = await resp.json(content_type=None)

        logger.info("Gmail account connected")
        return {
            "access_token": tokens.get("access_token"),
            "refresh_token": tokens.get("refresh_token"),
            "expires_in": tokens.get("expires_in"),
            "email": user_info.get("email"),
        }
