from enum import Enum


# Span attribute keys for OpenTelemetry tracing of sessions and tool calls
class SpanAttr(str, Enum):
    SESSION_ID = "voice.session_id"
    AGENT_NAME = "voice.agent_name"
    SCENARIO_KEY = "voice.scenario_key"
    SESSION_STATUS = "voice.session_status"
    TOOL_NAME = "tool.name"
    TOOL_FAMILY = "tool.family"
    TOOL_CALL_ID = "tool.call_id"
    TOOL_ACTION = "tool.action"
    REQUIRES_AUTH = "tool.requires_auth"
    ERROR_TYPE = "error.type"
    ERROR_MESSAGE = "error.message"

    def __str__(self) -> str:
        return self.value
