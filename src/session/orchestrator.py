"""
VoiceSessionOrchestrator: one user-facing voice session.

Wires the lifecycle controller and the turn coordinator to a transport's
event channel and exposes the selection surface (scenario key plus initial
agent). Every instance owns its own state, so several can run side by side.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Optional

from src.agents.models import Scenario
from src.agents.registry import AgentRegistry
from src.agents.scenarios import DEFAULT_SCENARIO_KEY, available_scenarios, load_builtin_scenarios
from src.realtime_client.transport import (
    AGENT_HANDOFF_EVENT,
    CONNECTION_STATE_EVENT,
    REALTIME_LOG_EVENT,
    AudioSink,
    RealtimeTransport,
)
from src.session.controller import GuardrailFactory, SessionLifecycleController
from src.session.coordinator import TurnCoordinator
from src.session.ephemeral import EphemeralKeyProvider
from src.session.guardrails import create_moderation_guardrail
from src.session.state import SessionState
from src.storage.kv_store import InMemoryKeyValueStore, KeyValueStore
from src.storage.preferences import SessionPreferences
from src.tools.compiler import ToolExecutor
from utils.ml_logging import get_logger

logger = get_logger(__name__)


class VoiceSessionOrchestrator:
    def __init__(
        self,
        transport: RealtimeTransport,
        key_provider: EphemeralKeyProvider,
        executor: ToolExecutor,
        *,
        store: Optional[KeyValueStore] = None,
        registry: Optional[AgentRegistry] = None,
        builtin_scenarios: Optional[Dict[str, Scenario]] = None,
        guardrail_factory: GuardrailFactory = create_moderation_guardrail,
        audio_sink: Optional[AudioSink] = None,
        max_log_events: int = 500,
    ) -> None:
        self.transport = transport
        self.store = store if store is not None else InMemoryKeyValueStore()
        self.preferences = SessionPreferences(self.store)
        self.registry = registry or AgentRegistry(self.store)
        self.builtin_scenarios = (
            builtin_scenarios if builtin_scenarios is not None else load_builtin_scenarios()
        )

        self.state = SessionState()
        self.controller = SessionLifecycleController(
            transport,
            key_provider,
            executor,
            state=self.state,
            preferences=self.preferences,
            guardrail_factory=guardrail_factory,
            audio_sink=audio_sink,
        )
        self.coordinator = TurnCoordinator(self.state, transport, self.controller)
        self.scenario_key: Optional[str] = None
        self.event_log: Deque[dict] = deque(maxlen=max_log_events)

        transport.on(CONNECTION_STATE_EVENT, self._on_connection_state)
        transport.on(AGENT_HANDOFF_EVENT, self._on_agent_handoff)
        transport.on(REALTIME_LOG_EVENT, self.event_log.append)

    def _on_connection_state(self, event: Dict[str, Any]) -> None:
        self.controller.on_connection_change(event.get("status", "DISCONNECTED"), event.get("session_id"))

    def _on_agent_handoff(self, event: Dict[str, Any]) -> None:
        self.coordinator.on_agent_handoff(event.get("agent_name", ""))

    # ------------------------------------------------------------------ #
    # Selection surface
    # ------------------------------------------------------------------ #
    def scenarios(self) -> Dict[str, Scenario]:
        return available_scenarios(self.registry, self.builtin_scenarios)

    @property
    def session_context(self) -> Dict[str, Optional[str]]:
        """Addressable context, equivalent to ``?agentConfig=...&agent=...``."""
        return {"agentConfig": self.scenario_key, "agent": self.state.active_agent_name}

    def _resolve_scenario(self, key: Optional[str]) -> Scenario:
        scenarios = self.scenarios()
        if key in scenarios:
            return scenarios[key]
        if key:
            logger.warning(f"Unknown scenario '{key}', falling back to {DEFAULT_SCENARIO_KEY}")
        if DEFAULT_SCENARIO_KEY in scenarios:
            return scenarios[DEFAULT_SCENARIO_KEY]
        if not scenarios:
            raise LookupError("No scenarios available.")
        return next(iter(scenarios.values()))

    async def select_scenario(
        self, key: Optional[str], agent_name: Optional[str] = None, *, reconnect: bool = True
    ) -> Scenario:
        """Tear down the current session and load another agent set."""
        scenario = self._resolve_scenario(key)
        await self.controller.disconnect()
        self.controller.load_scenario(scenario, agent_name)
        self.scenario_key = scenario.key
        if reconnect:
            await self.controller.connect()
        return scenario

    async def select_agent(self, agent_name: str, *, reconnect: bool = True) -> None:
        """Restart the session with ``agent_name`` as the initially active agent."""
        if self.controller.scenario is None:
            await self.select_scenario(None, agent_name, reconnect=reconnect)
            return
        await self.controller.disconnect()
        self.controller.load_scenario(self.controller.scenario, agent_name)
        if reconnect:
            await self.controller.connect()

    async def start(self, scenario_key: Optional[str] = None, agent_name: Optional[str] = None) -> bool:
        await self.select_scenario(scenario_key, agent_name, reconnect=False)
        return await self.controller.connect()

    async def toggle_connection(self) -> None:
        if self.state.status.is_active:
            await self.controller.disconnect()
        else:
            await self.controller.connect()

    # ------------------------------------------------------------------ #
    # Pass-throughs
    # ------------------------------------------------------------------ #
    def set_push_to_talk(self, enabled: bool) -> None:
        self.controller.set_push_to_talk(enabled)

    def set_audio_playback(self, enabled: bool) -> None:
        self.controller.set_audio_playback(enabled)

    def set_logs_expanded(self, expanded: bool) -> None:
        self.preferences.logs_expanded = expanded

    def talk_button_down(self) -> bool:
        return self.coordinator.talk_button_down()

    def talk_button_up(self) -> bool:
        return self.coordinator.talk_button_up()

    def send_text_message(self, text: str) -> bool:
        return self.coordinator.send_text_message(text)

    async def close(self) -> None:
        await self.controller.disconnect()
        self.transport.off(CONNECTION_STATE_EVENT, self._on_connection_state)
        self.transport.off(AGENT_HANDOFF_EVENT, self._on_agent_handoff)
        self.transport.off(REALTIME_LOG_EVENT, self.event_log.append)
