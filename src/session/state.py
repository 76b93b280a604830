from dataclasses import dataclass
from typing import Optional

from src.enums.session import SessionStatus, TurnMode


@dataclass
class SessionState:
    """
    Mutable state of one orchestrated session.

    Owned by a single orchestrator; only the controller and the turn
    coordinator write to it.
    """

    status: SessionStatus = SessionStatus.DISCONNECTED
    active_agent_name: Optional[str] = None
    turn_mode: TurnMode = TurnMode.VOICE_ACTIVITY
    is_user_speaking: bool = False
    audio_playback_enabled: bool = True
    handoff_pending: bool = False
    session_id: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.status is SessionStatus.CONNECTED

    @property
    def push_to_talk(self) -> bool:
        return self.turn_mode is TurnMode.PUSH_TO_TALK
