"""
apps/studio/backend/settings.py
===============================
Central place for every environment variable and constant used by the
voice-agent studio backend.
"""

from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv

from utils.ml_logging import get_logger

# Load environment variables from .env file
load_dotenv(override=False)
logger = get_logger("settings")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


ENVIRONMENT: str = os.getenv("ENV", "dev")
DEBUG_MODE: bool = _env_flag("DEBUG_MODE")

# ------------------------------------------------------------------------------
# OpenAI Realtime
# ------------------------------------------------------------------------------
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
REALTIME_MODEL: str = os.getenv("REALTIME_MODEL", "gpt-4o-realtime-preview-2025-06-03")
REALTIME_URL: str = os.getenv("REALTIME_URL", "wss://api.openai.com/v1/realtime")
GUARDRAIL_MODEL: str = os.getenv("GUARDRAIL_MODEL", "gpt-4o-mini")
AGENT_GENERATION_MODEL: str = os.getenv("AGENT_GENERATION_MODEL", "gpt-4o")

# ------------------------------------------------------------------------------
# Google OAuth / Gmail
# ------------------------------------------------------------------------------
APP_URL: str = os.getenv("APP_URL", "http://localhost:8010")
GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI: str = f"{APP_URL.rstrip('/')}/api/gmail/callback"
GMAIL_SCOPES: List[str] = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
]
BUILDER_PATH: str = "/builder"

# ------------------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------------------
REDIS_HOST: str = os.getenv("REDIS_HOST", "")
REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
REDIS_SSL: bool = _env_flag("REDIS_SSL")

# ------------------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------------------
ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8010"))
