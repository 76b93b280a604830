from enum import Enum


class SessionStatus(Enum):
    """Connection state of a realtime conversation session"""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> "SessionStatus":
        """Create SessionStatus from a transport-reported string"""
        for status in cls:
            if status.value == value.upper():
                return status
        raise ValueError(
            f"Invalid session status: {value}. Valid options: {[s.value for s in cls]}"
        )

    @property
    def is_active(self) -> bool:
        """True while a session is being opened or is open"""
        return self in [SessionStatus.CONNECTING, SessionStatus.CONNECTED]


class TurnMode(Enum):
    """How user turn boundaries are detected"""

    PUSH_TO_TALK = "push_to_talk"  # user marks start/end of speech explicitly
    VOICE_ACTIVITY = "voice_activity"  # server-side VAD detects end of speech

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_flag(cls, push_to_talk: bool) -> "TurnMode":
        return cls.PUSH_TO_TALK if push_to_talk else cls.VOICE_ACTIVITY
