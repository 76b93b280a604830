"""
Gmail API schemas.

Request/response bodies for the OAuth and proxy endpoints. Field names match
what the builder sends (``accessToken``) and what Google returns
(``access_token``).
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthUrlResponse(BaseModel):
    auth_url: str = Field(..., alias="authUrl", description="Google consent screen URL")

    model_config = ConfigDict(populate_by_name=True)


class CodeExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Authorization code from the callback")


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(None, description="Token lifetime in seconds")
    email: Optional[str] = None


class ProxyRequest(BaseModel):
    action: str = Field(..., description="One of list_unread, read_email, send_email, delete_email, create_draft")
    access_token: Optional[str] = Field(None, alias="accessToken")
    params: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "action": "send_email",
                "accessToken": "ya29...",
                "params": {"to": "someone@example.com", "subject": "Hi", "body": "Hello"},
            }
        },
    )
