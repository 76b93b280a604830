"""
Validation and handoff resolution for agent definitions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from src.agents.models import SUPPORTED_VOICES, AgentDefinition

AGENT_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class AgentValidationError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def validate_agent(agent: AgentDefinition) -> List[AgentValidationError]:
    """
    Check an agent definition before it is used in a session.

    :param agent: The definition to check.
    :return: All problems found; an empty list means the agent is valid.
    """
    errors: List[AgentValidationError] = []

    if not agent.name:
        errors.append(AgentValidationError("name", "Name is required"))
    elif not AGENT_NAME_PATTERN.match(agent.name):
        errors.append(
            AgentValidationError(
                "name",
                "Name must start with a letter and contain only letters, numbers, "
                "and underscores",
            )
        )

    if not agent.instructions.strip():
        errors.append(AgentValidationError("instructions", "Instructions are required"))

    if agent.voice not in SUPPORTED_VOICES:
        errors.append(
            AgentValidationError(
                "voice",
                f"Unsupported voice '{agent.voice}'. Valid options: {list(SUPPORTED_VOICES)}",
            )
        )

    seen_tools = set()
    for index, tool in enumerate(agent.tools):
        prefix = f"tools[{index}]"
        if not tool.name.strip():
            errors.append(AgentValidationError(f"{prefix}.name", "Tool name is required"))
        elif tool.name in seen_tools:
            errors.append(
                AgentValidationError(f"{prefix}.name", f"Duplicate tool name '{tool.name}'")
            )
        seen_tools.add(tool.name)

        if not tool.description.strip():
            errors.append(
                AgentValidationError(f"{prefix}.description", "Tool description is required")
            )

        seen_params = set()
        for param in tool.parameters:
            if not param.name.strip():
                errors.append(
                    AgentValidationError(f"{prefix}.parameters", "Parameter name is required")
                )
            elif param.name in seen_params:
                errors.append(
                    AgentValidationError(
                        f"{prefix}.parameters", f"Duplicate parameter name '{param.name}'"
                    )
                )
            seen_params.add(param.name)

    if agent.id in agent.handoffs:
        errors.append(AgentValidationError("handoffs", "An agent cannot hand off to itself"))

    return errors


def resolve_handoffs(
    agent: AgentDefinition, agents: Iterable[AgentDefinition]
) -> List[AgentDefinition]:
    """
    Replace an agent's handoff ids with the live agent objects.

    Ids that no longer exist in ``agents`` and self references are dropped
    silently; a stale reference is repaired, not reported.
    """
    by_id: Dict[str, AgentDefinition] = {a.id: a for a in agents}
    resolved: List[AgentDefinition] = []
    for handoff_id in agent.handoffs:
        target = by_id.get(handoff_id)
        if target is None or target.id == agent.id or target in resolved:
            continue
        resolved.append(target)
    return resolved


def resolve_all_handoffs(
    agents: Sequence[AgentDefinition],
) -> Dict[str, List[AgentDefinition]]:
    """Resolve handoffs for a whole set, keyed by agent id."""
    return {agent.id: resolve_handoffs(agent, agents) for agent in agents}


def prune_handoffs(agents: Sequence[AgentDefinition]) -> List[AgentDefinition]:
    """
    Return the set with dangling and self handoff ids removed.

    Agents that need no repair are returned unchanged (same object).
    """
    known = {a.id for a in agents}
    repaired: List[AgentDefinition] = []
    for agent in agents:
        kept = [h for h in agent.handoffs if h in known and h != agent.id]
        kept = list(dict.fromkeys(kept))
        if kept != agent.handoffs:
            agent = agent.replace(handoffs=kept, updated_at=agent.updated_at)
        repaired.append(agent)
    return repaired
