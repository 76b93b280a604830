"""
External-service credential record and its store.

The record mirrors what the OAuth exchange returns
(``access_token``, ``refresh_token``, ``email``, ``expires_at``) with
``expires_at`` in epoch milliseconds. Expired or unreadable records are
removed on read, so callers only ever see a usable credential or ``None``.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.storage.kv_store import KeyValueStore, StorageKeys, read_json, write_json
from utils.ml_logging import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExternalCredential(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    refresh_token: Optional[str] = None
    account_email: Optional[str] = Field(default=None, alias="email")
    expires_at: int = Field(..., description="Expiry as epoch milliseconds")

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        now_ms = _now_ms() if now_ms is None else now_ms
        return now_ms >= self.expires_at

    def public_view(self) -> Dict[str, Any]:
        """Account details safe to surface; never includes token values."""
        return {"email": self.account_email, "expires_at": self.expires_at}


class CredentialStore:
    """Reads and writes one external-service credential record."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = StorageKeys.GMAIL_AUTH,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock

    def load(self) -> Optional[ExternalCredential]:
        data = read_json(self._store, self._key)
        if data is None:
            return None
        try:
            credential = ExternalCredential.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Discarding malformed credential record '{self._key}': {e}")
            self._store.remove_item(self._key)
            return None

        if credential.is_expired(self._clock()):
            logger.info(f"Stored credential '{self._key}' expired, clearing it")
            self._store.remove_item(self._key)
            return None
        return credential

    def get_access_token(self) -> Optional[str]:
        credential = self.load()
        return credential.access_token if credential else None

    @property
    def is_connected(self) -> bool:
        return self.load() is not None

    def save(self, credential: ExternalCredential) -> None:
        write_json(self._store, self._key, credential.model_dump(by_alias=True))

    def save_token_response(
        self,
        access_token: str,
        expires_in: int,
        refresh_token: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ExternalCredential:
        """Persist the result of an authorization-code exchange."""
        credential = ExternalCredential(
            access_token=access_token,
            refresh_token=refresh_token,
            account_email=email,
            expires_at=self._clock() + int(expires_in) * 1000,
        )
        self.save(credential)
        logger.info(f"Stored credential for {email or 'unknown account'}")
        return credential

    def clear(self) -> None:
        self._store.remove_item(self._key)
