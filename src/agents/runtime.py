"""
Runtime agents handed to the realtime transport.

A :class:`RealtimeAgent` is an :class:`AgentDefinition` with its tools compiled
and its handoff ids resolved to agent names, ready to be turned into a
``session.update`` payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from src.agents.models import AgentDefinition
from src.agents.validation import resolve_handoffs
from src.tools.compiler import CompiledTool, ToolExecutor, compile_agent_tools


@dataclass
class RealtimeAgent:
    name: str
    instructions: str
    voice: str
    handoff_description: str = ""
    tools: List[CompiledTool] = field(default_factory=list)
    handoffs: List[str] = field(default_factory=list)

    def tool(self, name: str) -> Optional[CompiledTool]:
        return next((t for t in self.tools if t.name == name), None)


def build_realtime_agents(
    agents: Sequence[AgentDefinition], executor: ToolExecutor
) -> List[RealtimeAgent]:
    """Compile every agent of a set, keeping the set's order."""
    agents = list(agents)
    return [
        RealtimeAgent(
            name=agent.name,
            instructions=agent.instructions,
            voice=agent.voice,
            handoff_description=agent.handoff_description,
            tools=compile_agent_tools(agent, executor),
            handoffs=[target.name for target in resolve_handoffs(agent, agents)],
        )
        for agent in agents
    ]
