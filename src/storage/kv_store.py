"""
Durable key/value persistence for session preferences, external-service
credentials and user-authored agents.

Every category is stored as a single versionless document under a fixed key
(:class:`StorageKeys`). Two backends are provided: an in-memory store used by
tests and single-process runs, and a Redis-backed store for durable storage.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional, Protocol

import redis
from redis.exceptions import RedisError

from utils.ml_logging import get_logger

logger = get_logger(__name__)


class StorageKeys:
    PUSH_TO_TALK = "pushToTalkUI"
    LOGS_EXPANDED = "logsExpanded"
    AUDIO_PLAYBACK_ENABLED = "audioPlaybackEnabled"
    GMAIL_AUTH = "gmail_auth"
    CUSTOM_AGENTS = "voice-agent-builder-agents"


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items


class RedisKeyValueStore:
    """
    Redis-backed store. Keys are namespaced per user so several users can
    share one Redis database.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        *,
        namespace: str = "voice-agent",
        user_id: str = "default",
        host: Optional[str] = None,
        port: Optional[int] = None,
        password: Optional[str] = None,
        ssl: bool = False,
    ) -> None:
        self.namespace = namespace
        self.user_id = user_id
        if client is None:
            host = host or os.getenv("REDIS_HOST", "localhost")
            port = port or int(os.getenv("REDIS_PORT", "6379"))
            password = password or os.getenv("REDIS_ACCESS_KEY") or None
            client = redis.Redis(
                host=host,
                port=port,
                password=password,
                ssl=ssl,
                decode_responses=True,
                socket_connect_timeout=1.0,
                socket_timeout=1.0,
                client_name="voice-agent-store",
            )
            logger.info(f"Redis key/value store initialized for {host}:{port}")
        self.client = client

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{self.user_id}:{key}"

    def get_item(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set_item(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def remove_item(self, key: str) -> None:
        self.client.delete(self._key(key))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False


def read_json(store: KeyValueStore, key: str) -> Optional[Any]:
    """
    Load a JSON document. A value that does not parse is discarded from the
    store and treated as absent.
    """
    raw = store.get_item(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Discarding malformed stored document '{key}': {e}")
        store.remove_item(key)
        return None


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set_item(key, json.dumps(value))


def read_flag(store: KeyValueStore, key: str, default: bool) -> bool:
    raw = store.get_item(key)
    if raw is None:
        return default
    return raw == "true"


def write_flag(store: KeyValueStore, key: str, value: bool) -> None:
    store.set_item(key, "true" if value else "false")
