"""
Exception types shared by the session orchestrator and the tool dispatcher.

Only session-level failures are raised across module boundaries; tool
failures are converted to structured ``{"error": ...}`` results by the
dispatcher and never propagate to the transport.
"""

from typing import List, Optional


class VoiceSessionError(Exception):
    """Base class for orchestrator errors."""


class ConnectionFailure(VoiceSessionError):
    """A connect attempt could not be completed."""

    def __init__(self, message: str, *, reason: str = "transport") -> None:
        super().__init__(message)
        self.reason = reason


class AgentValidationFailed(VoiceSessionError):
    """One or more agent definitions failed validation."""

    def __init__(self, agent_name: str, errors: Optional[List[object]] = None) -> None:
        self.agent_name = agent_name
        self.errors = list(errors or [])
        details = "; ".join(str(e) for e in self.errors) or "invalid definition"
        super().__init__(f"Agent '{agent_name}' is invalid: {details}")


class UnsupportedAction(VoiceSessionError):
    """A tool name matched an integration family but maps to no known action."""

    def __init__(self, family: str, tool_name: str) -> None:
        self.family = family
        self.tool_name = tool_name
        super().__init__(f"Unknown {family} tool: {tool_name}")
