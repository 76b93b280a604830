"""
Short-lived realtime session credentials.

The backend mints them (``GET /api/session``) and returns the OpenAI session
object; the usable value lives at ``client_secret.value``.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from utils.ml_logging import get_logger

logger = get_logger(__name__)


def extract_client_secret(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    secret = payload.get("client_secret")
    if not isinstance(secret, dict):
        return None
    value = secret.get("value")
    return value if isinstance(value, str) and value else None


class EphemeralKeyProvider:
    def __init__(
        self,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self) -> Optional[str]:
        """
        Returns the session key, or ``None`` when the endpoint gives no usable
        value. Network failures are logged and also reported as ``None``.
        """
        try:
            if self._session is not None:
                payload = await self._get(self._session)
            else:
                async with aiohttp.ClientSession(timeout=self._timeout) as session:
                    payload = await self._get(session)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to fetch ephemeral key from {self.url}: {e}")
            return None

        key = extract_client_secret(payload)
        if key is None:
            logger.error("No ephemeral key provided by the server")
        return key

    async def _get(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        async with session.get(self.url, timeout=self._timeout) as resp:
            if resp.status != 200:
                logger.error(f"Session endpoint returned HTTP {resp.status}")
                return {}
            return await resp.json(content_type=None)
