"""
Agent Definition Model
======================

Pydantic schemas for user-authored and built-in voice agents.

- ``ToolParameter`` / ``ToolDefinition``: typed tool declarations that the
  tool compiler turns into function-calling schemas.
- ``AgentDefinition``: identity, voice, instructions, tools and handoff ids.
- ``Scenario``: an ordered agent set selectable as a session context.

Documents are persisted with camelCase keys (``handoffDescription``,
``createdAt``) so that stored agent sets stay readable by the builder;
snake_case names are accepted on input as well.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Voices accepted by the realtime transport. TTS-only voices (fable, onyx,
# nova) are rejected before session start.
SUPPORTED_VOICES: tuple = (
    "sage",
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "shimmer",
    "verse",
)
DEFAULT_VOICE = "sage"

PARAMETER_TYPES: tuple = ("string", "number", "boolean", "object", "array")
ParameterType = Literal["string", "number", "boolean", "object", "array"]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in durable storage."""
        return self.model_dump(mode="json", by_alias=True)


class ToolParameter(_Document):
    """One typed argument of a tool."""

    name: str = Field(..., description="Argument name, unique within the tool")
    type: ParameterType = Field(default="string", description="JSON schema primitive type")
    description: str = Field(default="", description="Guidance shown to the agent")
    required: bool = Field(default=False, description="Whether the argument is mandatory")


class ToolDefinition(_Document):
    """A named, schema-described function an agent may invoke."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., description="Invocation key, unique within the owning agent")
    description: str = Field(default="")
    parameters: List[ToolParameter] = Field(default_factory=list)


class AgentDefinition(_Document):
    """
    Data describing one agent.

    Instances are immutable; edits go through :meth:`replace`, which returns a
    new object with a refreshed ``updated_at`` timestamp.
    """

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., description="Identifier-safe name used as transport selector")
    voice: str = Field(default=DEFAULT_VOICE)
    handoff_description: str = Field(default="")
    instructions: str = Field(default="")
    tools: List[ToolDefinition] = Field(default_factory=list)
    handoffs: List[str] = Field(default_factory=list, description="Target agent ids")
    created_at: str = Field(default_factory=_utc_now)
    updated_at: str = Field(default_factory=_utc_now)
    is_read_only: bool = Field(default=False)

    def replace(self, **changes: Any) -> "AgentDefinition":
        changes.setdefault("updated_at", _utc_now())
        # model_copy skips validation; round-trip so nested dicts become models.
        data = self.model_dump()
        data.update(changes)
        return AgentDefinition.model_validate(data)

    def tool(self, name: str) -> Optional[ToolDefinition]:
        return next((t for t in self.tools if t.name == name), None)

    @classmethod
    def from_generated(cls, payload: Dict[str, Any]) -> "AgentDefinition":
        """
        Normalize an agent produced by the generation service.

        Generated payloads carry no ids, may omit optional fields and may use
        parameter types outside the supported set; ids are assigned fresh,
        missing text defaults to empty and unknown types fall back to string.
        Handoffs are never trusted from a generated payload.
        """
        tools = []
        for raw_tool in payload.get("tools") or []:
            params = []
            for raw_param in raw_tool.get("parameters") or []:
                param_type = raw_param.get("type") or "string"
                params.append(
                    ToolParameter(
                        name=raw_param.get("name", ""),
                        type=param_type if param_type in PARAMETER_TYPES else "string",
                        description=raw_param.get("description") or "",
                        required=bool(raw_param.get("required", False)),
                    )
                )
            tools.append(
                ToolDefinition(
                    name=raw_tool.get("name", ""),
                    description=raw_tool.get("description") or "",
                    parameters=params,
                )
            )

        return cls(
            name=payload.get("name", ""),
            voice=payload.get("voice") or DEFAULT_VOICE,
            handoff_description=payload.get("handoffDescription")
            or payload.get("handoff_description")
            or "",
            instructions=payload.get("instructions") or "",
            tools=tools,
            handoffs=[],
        )


class Scenario(BaseModel):
    """
    An agent set selectable as a session context.

    ``guardrail_display_name`` is the brand name the moderation guardrail is
    bound to for this scenario.
    """

    model_config = ConfigDict(populate_by_name=True)

    key: str
    agents: List[AgentDefinition] = Field(default_factory=list)
    guardrail_display_name: str = Field(default="", alias="guardrailDisplayName")
    description: str = Field(default="")

    @property
    def agent_names(self) -> List[str]:
        return [a.name for a in self.agents]

    @property
    def default_agent_name(self) -> Optional[str]:
        return self.agents[0].name if self.agents else None

    def get_agent(self, name: str) -> Optional[AgentDefinition]:
        return next((a for a in self.agents if a.name == name), None)

    def display_name(self) -> str:
        return self.guardrail_display_name or self.key
