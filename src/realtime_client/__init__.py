"""
Realtime Client Package

Provides classes and utilities for:
- The transport contract used by the session orchestrator
- WebSocket API management
- Multi-agent sessions with tool calls and handoffs
- Event dispatching and handling
- Audio encoding/decoding
"""

from .api import RealtimeAPI
from .client import RealtimeAgentClient
from .event_handler import RealtimeEventHandler
from .transport import (
    AGENT_HANDOFF_EVENT,
    ALLOWED_CLIENT_EVENTS,
    CONNECTION_STATE_EVENT,
    GUARDRAIL_TRIPPED_EVENT,
    AudioSink,
    GuardrailResult,
    OutputGuardrail,
    RealtimeTransport,
)
from .utils import array_buffer_to_base64, base64_to_pcm16, float_to_16bit_pcm

__all__ = [
    "RealtimeAgentClient",
    "RealtimeAPI",
    "RealtimeEventHandler",
    "RealtimeTransport",
    "AudioSink",
    "OutputGuardrail",
    "GuardrailResult",
    "AGENT_HANDOFF_EVENT",
    "ALLOWED_CLIENT_EVENTS",
    "CONNECTION_STATE_EVENT",
    "GUARDRAIL_TRIPPED_EVENT",
    "float_to_16bit_pcm",
    "base64_to_pcm16",
    "array_buffer_to_base64",
]
