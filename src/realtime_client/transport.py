"""
Transport contract between the session orchestrator and a realtime speech
service.

The orchestrator only ever talks to a transport through this surface and
listens to it through the event channel (``on``). Event names published on
the channel:

- ``connection.state``: ``{"status": "CONNECTED" | "DISCONNECTED", "session_id"}``
- ``agent.handoff``: ``{"agent_name", "from_agent"}``
- ``guardrail.tripped``: ``{"guardrail", "category", "rationale", "text"}``
- ``realtime.event``: every raw client/server event, for the logs pane
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import numpy as np

from src.agents.runtime import RealtimeAgent

CONNECTION_STATE_EVENT = "connection.state"
AGENT_HANDOFF_EVENT = "agent.handoff"
GUARDRAIL_TRIPPED_EVENT = "guardrail.tripped"
REALTIME_LOG_EVENT = "realtime.event"

# Client events the orchestrator is allowed to send directly.
ALLOWED_CLIENT_EVENTS = frozenset(
    {
        "session.update",
        "conversation.item.create",
        "response.create",
        "input_audio_buffer.clear",
        "input_audio_buffer.commit",
    }
)

CredentialProvider = Callable[[], Awaitable[str]]


class AudioSink(Protocol):
    """Where agent speech (pcm16 mono) is played."""

    def write(self, samples: np.ndarray) -> None: ...

    def clear(self) -> None: ...


@dataclass
class GuardrailResult:
    tripped: bool
    category: str = "NONE"
    rationale: str = ""


class OutputGuardrail(Protocol):
    name: str

    async def check(self, text: str) -> GuardrailResult: ...


class RealtimeTransport(Protocol):
    def on(self, event_name: str, handler: Callable[[Any], Any]) -> None: ...

    def off(self, event_name: str, handler: Callable[[Any], Any]) -> bool: ...

    async def connect(
        self,
        *,
        get_credential: CredentialProvider,
        initial_agents: Sequence[RealtimeAgent],
        audio_sink: Optional[AudioSink] = None,
        guardrails: Optional[List[OutputGuardrail]] = None,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> None: ...

    async def disconnect(self) -> None: ...

    def send_user_text(self, text: str) -> None: ...

    def send_event(self, event: Dict[str, Any]) -> None: ...

    def interrupt(self) -> None: ...

    def mute(self, muted: bool) -> None: ...
