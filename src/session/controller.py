"""
Session Lifecycle Controller
============================

Owns the ``DISCONNECTED -> CONNECTING -> CONNECTED`` state machine of one
realtime session.

Connect flow
------------
1. Re-entrancy: ``connect()`` is a no-op unless the session is DISCONNECTED.
2. A short-lived key is fetched from the backend; no key aborts the attempt.
3. The scenario's agents are validated and ordered with the selected agent
   first, compiled, and handed to the transport with a moderation guardrail
   bound to the scenario's display name.
4. The transport confirms with a ``CONNECTED`` connection-state callback; the
   controller then pushes the turn-detection configuration and, unless the
   push follows a handoff, one synthetic "hi" user turn.

Failures never raise out of ``connect()``: they are logged, the state goes
back to DISCONNECTED and listeners receive the :class:`ConnectionFailure`.
"""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional, Sequence, Union

from src.agents.models import AgentDefinition, Scenario
from src.agents.runtime import build_realtime_agents
from src.agents.validation import validate_agent
from src.enums.session import SessionStatus, TurnMode
from src.errors import AgentValidationFailed, ConnectionFailure
from src.realtime_client.transport import AudioSink, OutputGuardrail, RealtimeTransport
from src.session.ephemeral import EphemeralKeyProvider
from src.session.guardrails import create_moderation_guardrail
from src.session.state import SessionState
from src.storage.preferences import SessionPreferences
from src.tools.compiler import ToolExecutor
from utils.ml_logging import get_logger

logger = get_logger(__name__)

VAD_TURN_DETECTION = {
    "type": "server_vad",
    "threshold": 0.9,
    "prefix_padding_ms": 300,
    "silence_duration_ms": 500,
    "create_response": True,
}
GREETING_TEXT = "hi"

StatusListener = Callable[[SessionStatus, Optional[ConnectionFailure]], None]
GuardrailFactory = Callable[[str], OutputGuardrail]


def order_agents(agents: Sequence[AgentDefinition], selected_name: Optional[str]) -> List[AgentDefinition]:
    """Move the selected agent to the front, keeping the others in order."""
    agents = list(agents)
    index = next((i for i, a in enumerate(agents) if a.name == selected_name), None)
    if index:
        agents.insert(0, agents.pop(index))
    return agents


class SessionLifecycleController:
    def __init__(
        self,
        transport: RealtimeTransport,
        key_provider: EphemeralKeyProvider,
        executor: ToolExecutor,
        *,
        state: Optional[SessionState] = None,
        preferences: Optional[SessionPreferences] = None,
        guardrail_factory: GuardrailFactory = create_moderation_guardrail,
        audio_sink: Optional[AudioSink] = None,
    ) -> None:
        self.transport = transport
        self.key_provider = key_provider
        self.executor = executor
        self.preferences = preferences
        self.guardrail_factory = guardrail_factory
        self.audio_sink = audio_sink

        self.state = state or SessionState()
        if preferences is not None:
            self.state.turn_mode = TurnMode.from_flag(preferences.push_to_talk)
            self.state.audio_playback_enabled = preferences.audio_playback_enabled

        self.scenario: Optional[Scenario] = None
        self.last_error: Optional[ConnectionFailure] = None
        self._listeners: List[StatusListener] = []

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SessionStatus, error: Optional[ConnectionFailure] = None) -> None:
        previous = self.state.status
        self.state.status = status
        if status is SessionStatus.DISCONNECTED:
            self.state.is_user_speaking = False
            self.state.session_id = None
        logger.info(f"Session status {previous} -> {status}")
        for listener in list(self._listeners):
            listener(status, error)

    def _fail(self, failure: ConnectionFailure) -> bool:
        self.last_error = failure
        logger.error(f"Connection failed ({failure.reason}): {failure}")
        self._set_status(SessionStatus.DISCONNECTED, failure)
        return False

    # ------------------------------------------------------------------ #
    # Scenario selection
    # ------------------------------------------------------------------ #
    def load_scenario(self, scenario: Scenario, agent_name: Optional[str] = None) -> None:
        """Make ``scenario`` the session context; only valid while disconnected."""
        if self.state.status is not SessionStatus.DISCONNECTED:
            raise RuntimeError("Cannot change scenario while a session is active.")
        self.scenario = scenario
        if agent_name and scenario.get_agent(agent_name):
            self.state.active_agent_name = agent_name
        else:
            self.state.active_agent_name = scenario.default_agent_name

    def _validated_agents(self) -> List[AgentDefinition]:
        for agent in self.scenario.agents:
            errors = validate_agent(agent)
            if errors:
                raise AgentValidationFailed(agent.name, errors)
        return list(self.scenario.agents)

    # ------------------------------------------------------------------ #
    # Connect / disconnect
    # ------------------------------------------------------------------ #
    async def connect(self) -> bool:
        if self.state.status is not SessionStatus.DISCONNECTED:
            logger.debug(f"connect() ignored while {self.state.status}")
            return False
        if self.scenario is None or not self.scenario.agents:
            return self._fail(ConnectionFailure("No agents loaded for this session.", reason="config"))

        self.last_error = None
        self.state.handoff_pending = False
        self._set_status(SessionStatus.CONNECTING)

        try:
            ephemeral_key = await self.key_provider.fetch()
        except Exception as e:
            logger.exception("Error fetching the ephemeral key")
            return self._fail(ConnectionFailure(str(e) or type(e).__name__, reason="credential"))
        if not ephemeral_key:
            return self._fail(
                ConnectionFailure("No ephemeral key provided by the server", reason="credential")
            )
        if self.state.status is not SessionStatus.CONNECTING:
            logger.info("Connect attempt abandoned; session state changed during key fetch")
            return False

        try:
            agents = order_agents(self._validated_agents(), self.state.active_agent_name)
            self.state.active_agent_name = agents[0].name
            guardrail = self.guardrail_factory(self.scenario.display_name())

            async def get_credential() -> str:
                return ephemeral_key

            await self.transport.connect(
                get_credential=get_credential,
                initial_agents=build_realtime_agents(agents, self.executor),
                audio_sink=self.audio_sink,
                guardrails=[guardrail],
                extra_context={"scenario_key": self.scenario.key},
            )
        except AgentValidationFailed as e:
            return self._fail(ConnectionFailure(str(e), reason="validation"))
        except Exception as e:
            logger.exception("Error connecting to the realtime transport")
            return self._fail(ConnectionFailure(str(e) or type(e).__name__))

        # disconnect() or a transport close may have landed while the socket opened.
        if self.state.status is SessionStatus.DISCONNECTED:
            logger.info("Connect attempt abandoned; session was torn down while the transport opened")
            await self.transport.disconnect()
            return False
        return True

    async def disconnect(self) -> None:
        """Idempotent; while already disconnected only local sub-state is reset."""
        if self.state.status is SessionStatus.DISCONNECTED:
            self.state.is_user_speaking = False
            return
        self._set_status(SessionStatus.DISCONNECTED)
        await self.transport.disconnect()

    def on_connection_change(self, status: Union[str, SessionStatus], session_id: Optional[str] = None) -> None:
        """Connection-state callback from the transport."""
        if isinstance(status, str):
            status = SessionStatus.from_string(status)
        previous = self.state.status
        if status is previous:
            return
        if status is SessionStatus.CONNECTED and previous is SessionStatus.DISCONNECTED:
            logger.warning("Ignoring CONNECTED from transport for a session that was torn down")
            return

        if status is SessionStatus.DISCONNECTED:
            self._set_status(status, ConnectionFailure("Transport closed the session"))
            return

        self._set_status(status)
        if status is SessionStatus.CONNECTED:
            self.state.session_id = session_id or str(uuid.uuid4())
            self._sync_mute()
            self.push_configuration()

    # ------------------------------------------------------------------ #
    # Session configuration
    # ------------------------------------------------------------------ #
    def push_configuration(self) -> None:
        """Send turn detection; greet unless this push follows a handoff."""
        trigger_greeting = not self.state.handoff_pending
        self.state.handoff_pending = False
        self.update_session(trigger_greeting)

    def update_session(self, trigger_greeting: bool = False) -> None:
        turn_detection = None if self.state.push_to_talk else dict(VAD_TURN_DETECTION)
        self.transport.send_event({"type": "session.update", "session": {"turn_detection": turn_detection}})
        if trigger_greeting:
            self.send_simulated_user_message(GREETING_TEXT)

    def send_simulated_user_message(self, text: str) -> None:
        self.transport.send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "id": uuid.uuid4().hex[:32],
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": text}],
                },
            }
        )
        self.transport.send_event({"type": "response.create"})

    def set_push_to_talk(self, enabled: bool) -> None:
        self.state.turn_mode = TurnMode.from_flag(enabled)
        if not enabled:
            self.state.is_user_speaking = False
        if self.preferences is not None:
            self.preferences.push_to_talk = enabled
        if self.state.is_connected:
            self.update_session(trigger_greeting=False)

    def set_audio_playback(self, enabled: bool) -> None:
        self.state.audio_playback_enabled = bool(enabled)
        if self.preferences is not None:
            self.preferences.audio_playback_enabled = enabled
        if self.state.is_connected:
            self._sync_mute()

    def _sync_mute(self) -> None:
        self.transport.mute(not self.state.audio_playback_enabled)
