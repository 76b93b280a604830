"""
Mints short-lived realtime session keys with the server-side OpenAI key.
"""

from typing import Any, Dict

import aiohttp

from utils.ml_logging import get_logger

logger = get_logger(__name__)


class RealtimeSessionError(Exception):
    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.status = status


class RealtimeSessionMinter:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        self._session = session
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/realtime/sessions"

    async def create(self) -> Dict[str, Any]:
        """Return the OpenAI session object; the key is ``client_secret.value``."""
        if not self.api_key:
            raise RealtimeSessionError("OPENAI_API_KEY is not configured", 500)
        async with self._session.post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json={"model": self.model},
        ) as resp:
            data = await resp.json(content_type=None)
            if resp.status != 200:
                message = ((data or {}).get("error") or {}).get("message") or f"HTTP {resp.status}"
                logger.error(f"Realtime session request failed: {message}")
                raise RealtimeSessionError(message, resp.status)
        return data
