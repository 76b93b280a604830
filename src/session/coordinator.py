"""
Turn & Handoff Coordinator.

Push-to-talk is a two-state machine (``idle <-> user speaking``) layered on a
connected session: pressing interrupts the agent and clears buffered input,
releasing commits the buffer as the user's turn and requests a response.
Presses while not connected and releases while idle do nothing.
"""

from src.realtime_client.transport import RealtimeTransport
from src.session.controller import SessionLifecycleController
from src.session.state import SessionState
from utils.ml_logging import get_logger

logger = get_logger(__name__)


class TurnCoordinator:
    def __init__(
        self,
        state: SessionState,
        transport: RealtimeTransport,
        controller: SessionLifecycleController,
    ) -> None:
        self.state = state
        self.transport = transport
        self.controller = controller

    def talk_button_down(self) -> bool:
        if not self.state.is_connected:
            return False
        self.transport.interrupt()
        self.transport.send_event({"type": "input_audio_buffer.clear"})
        self.state.is_user_speaking = True
        return True

    def talk_button_up(self) -> bool:
        if not self.state.is_connected or not self.state.is_user_speaking:
            return False
        self.state.is_user_speaking = False
        self.transport.send_event({"type": "input_audio_buffer.commit"})
        self.transport.send_event({"type": "response.create"})
        return True

    def send_text_message(self, text: str) -> bool:
        """Forward typed text as a user turn, interrupting the agent first."""
        text = (text or "").strip()
        if not text:
            return False
        if not self.state.is_connected:
            logger.warning("Text message dropped: session is not connected")
            return False
        self.transport.interrupt()
        self.transport.send_user_text(text)
        return True

    def on_agent_handoff(self, agent_name: str) -> bool:
        """
        React to a transport-reported handoff.

        The next configuration push skips the greeting; the flag is reset by
        that push.
        """
        scenario = self.controller.scenario
        if scenario is None or scenario.get_agent(agent_name) is None:
            logger.warning(f"Handoff to unknown agent '{agent_name}' ignored")
            return False

        logger.keyinfo(f"Agent handoff: {self.state.active_agent_name} -> {agent_name}")
        self.state.handoff_pending = True
        self.state.active_agent_name = agent_name
        if self.state.is_connected:
            self.controller.push_configuration()
        return True
