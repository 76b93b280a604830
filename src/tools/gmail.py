"""
Gmail integration family.

Tools named ``gmail_*`` are translated to proxy actions through a fixed table
and sent to the external-service proxy endpoint together with the stored
access token. Missing or expired credentials and HTTP 401 responses come back
as ``{"error", "requiresAuth": True}`` so the agent can ask the user to
reconnect instead of reporting a generic failure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Protocol

import aiohttp

from src.errors import UnsupportedAction
from src.storage.credentials import CredentialStore
from src.tools.dispatcher import ToolContext, ToolResult
from utils.ml_logging import get_logger

logger = get_logger(__name__)

GMAIL_ACTIONS: Dict[str, str] = {
    "gmail_list_unread": "list_unread",
    "gmail_read_email": "read_email",
    "gmail_send_email": "send_email",
    "gmail_delete_email": "delete_email",
    "gmail_create_draft": "create_draft",
}

NOT_CONNECTED_MESSAGE = (
    "Gmail not connected. Please connect your Gmail account in the Agent Builder settings."
)
SESSION_EXPIRED_MESSAGE = "Gmail session expired. Please reconnect your Gmail account."


@dataclass
class ProxyResponse:
    status: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class ExternalServiceProxy(Protocol):
    async def call(
        self, action: str, access_token: str, params: Dict[str, Any]
    ) -> ProxyResponse: ...


class HttpServiceProxy:
    """Posts ``{action, accessToken, params}`` to the proxy endpoint."""

    def __init__(
        self,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def call(
        self, action: str, access_token: str, params: Dict[str, Any]
    ) -> ProxyResponse:
        body = {"action": action, "accessToken": access_token, "params": params}
        if self._session is not None:
            return await self._post(self._session, body)
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            return await self._post(session, body)

    async def _post(self, session: aiohttp.ClientSession, body: Dict[str, Any]) -> ProxyResponse:
        async with session.post(self.url, json=body, timeout=self._timeout) as resp:
            try:
                payload = await resp.json(content_type=None)
            except ValueError:
                text = await resp.text()
                payload = {"error": text or resp.reason or f"HTTP {resp.status}"}
            if not isinstance(payload, dict):
                payload = {"result": payload}
            return ProxyResponse(status=resp.status, payload=payload)


def _redact(value: Any, secrets: Iterable[str]) -> Any:
    secrets = [s for s in secrets if s]
    if isinstance(value, dict):
        return {k: _redact(v, secrets) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v, secrets) for v in value]
    if isinstance(value, str):
        for secret in secrets:
            value = value.replace(secret, "[redacted]")
    return value


class GmailToolFamily:
    name = "gmail"
    prefix = "gmail_"

    def __init__(self, credentials: CredentialStore, proxy: ExternalServiceProxy) -> None:
        self._credentials = credentials
        self._proxy = proxy

    async def execute(
        self, tool_name: str, args: Dict[str, Any], context: ToolContext
    ) -> ToolResult:
        action = GMAIL_ACTIONS.get(tool_name)
        if action is None:
            raise UnsupportedAction(self.name, tool_name)

        credential = self._credentials.load()
        if credential is None:
            logger.info(f"Gmail tool {tool_name} called without a usable credential")
            return {"error": NOT_CONNECTED_MESSAGE, "requiresAuth": True}

        secrets = (credential.access_token, credential.refresh_token or "")
        try:
            response = await self._proxy.call(action, credential.access_token, args)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Gmail proxy call '{action}' failed: {e}")
            return {"error": _redact(str(e), secrets) or "Failed to call Gmail API"}

        if response.status == 401:
            logger.warning(f"Gmail proxy rejected the access token for '{action}'")
            return {"error": SESSION_EXPIRED_MESSAGE, "requiresAuth": True}
        if not response.ok:
            message = response.payload.get("error") or "Gmail API error"
            logger.error(f"Gmail action '{action}' failed ({response.status}): {message}")
            return {"error": _redact(str(message), secrets)}

        return _redact(response.payload, secrets)
