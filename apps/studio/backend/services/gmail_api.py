"""
Thin async client for the Gmail REST API, used by the proxy endpoint.

Each action returns the compact JSON the voice agents consume. Gmail error
bodies are surfaced as :class:`GmailApiError` carrying Gmail's status code so
the endpoint can pass a 401 through unchanged.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Dict, List, Optional

import aiohttp

from utils.ml_logging import get_logger

logger = get_logger(__name__)

GMAIL_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"


class GmailApiError(Exception):
    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.status = status


def encode_message(to: Optional[str], subject: Optional[str], body: Optional[str]) -> str:
    """RFC 2822 text message as unpadded base64url, the form Gmail expects in ``raw``."""
    headers = []
    if to:
        headers.append(f"To: {to}")
    headers.append(f"Subject: {subject or '(No Subject)'}")
    headers.append("Content-Type: text/plain; charset=utf-8")
    content = "\r\n".join(headers + ["", body or ""])
    return base64.urlsafe_b64encode(content.encode("utf-8")).decode("ascii").rstrip("=")


def decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _header(message: Dict[str, Any], name: str) -> str:
    for header in (message.get("payload") or {}).get("headers") or []:
        if header.get("name") == name:
            return header.get("value", "")
    return ""


def _plain_text(payload: Dict[str, Any]) -> str:
    data = (payload.get("body") or {}).get("data")
    if data:
        return decode_body(data)
    for part in payload.get("parts") or []:
        if part.get("mimeType") == "text/plain" and (part.get("body") or {}).get("data"):
            return decode_body(part["body"]["data"])
    return ""


class GmailApiClient:
    def __init__(self, session: aiohttp.ClientSession, base_url: str = GMAIL_BASE_URL) -> None:
        self._session = session
        self.base_url = base_url

    async def _request(
        self, method: str, path: str, access_token: str, json_body: Optional[dict] = None
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
        async with self._session.request(
            method, f"{self.base_url}{path}", headers=headers, json=json_body
        ) as resp:
            data = await resp.json(content_type=None)
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                raise GmailApiError(error.get("message", "Gmail API error"), error.get("code", resp.status))
            raise GmailApiError(str(error), resp.status)
        return data or {}

    async def list_unread(self, access_token: str, limit: int = 10) -> Dict[str, Any]:
        data = await self._request(
            "GET", f"/messages?q=is:unread&maxResults={int(limit)}", access_token
        )

        async def details(message_id: str) -> Dict[str, Any]:
            msg = await self._request(
                "GET",
                f"/messages/{message_id}?format=metadata"
                "&metadataHeaders=From&metadataHeaders=Subject&metadataHeaders=Date",
                access_token,
            )
            return {
                "id": message_id,
                "from": _header(msg, "From"),
                "subject": _header(msg, "Subject"),
                "date": _header(msg, "Date"),
                "snippet": msg.get("snippet"),
            }

        messages: List[Dict[str, Any]] = await asyncio.gather(
            *(details(m["id"]) for m in data.get("messages") or [])
        )
        return {"messages": messages, "count": data.get("resultSizeEstimate") or len(messages)}

    async def read_email(self, access_token: str, email_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/messages/{email_id}?format=full", access_token)
        return {
            "id": data.get("id"),
            "from": _header(data, "From"),
            "to": _header(data, "To"),
            "subject": _header(data, "Subject"),
            "date": _header(data, "Date"),
            "body": _plain_text(data.get("payload") or {}) or data.get("snippet"),
        }

    async def send_email(self, access_token: str, to: str, subject: str, body: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/messages/send", access_token, {"raw": encode_message(to, subject, body)}
        )
        return {"success": True, "messageId": data.get("id"), "message": f"Email sent to {to}"}

    async def delete_email(self, access_token: str, email_id: str) -> Dict[str, Any]:
        await self._request("POST", f"/messages/{email_id}/trash", access_token)
        return {"success": True, "message": f"Email {email_id} moved to trash"}

    async def create_draft(
        self,
        access_token: str,
        to: Optional[str] = None,
        subject: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/drafts", access_token, {"message": {"raw": encode_message(to, subject, body)}}
        )
        return {"success": True, "draftId": data.get("id"), "message": "Draft created successfully"}

    async def run(self, action: str, access_token: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch a proxy action. Unknown actions raise a 400 GmailApiError;
        a missing required parameter raises ``KeyError``.
        """
        params = params or {}
        if action == "list_unread":
            return await self.list_unread(access_token, params.get("limit") or 10)
        if action == "read_email":
            return await self.read_email(access_token, params["email_id"])
        if action == "send_email":
            return await self.send_email(access_token, params["to"], params["subject"], params["body"])
        if action == "delete_email":
            return await self.delete_email(access_token, params["email_id"])
        if action == "create_draft":
            return await self.create_draft(
                access_token, params.get("to"), params.get("subject"), params.get("body")
            )
        raise GmailApiError(f"Unknown action: {action}", 400)
