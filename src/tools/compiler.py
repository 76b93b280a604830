"""
Tool Compiler: turns a stored ToolDefinition into a function-calling schema
paired with an execution entry point.

Compilation is pure; the same definition always yields the same schema. The
schema sets ``additionalProperties`` to false, so undeclared arguments are
rejected by the transport rather than here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.agents.models import AgentDefinition, ToolDefinition, ToolParameter
from src.tools.dispatcher import ToolContext, ToolResult

ToolExecutor = Callable[[str, Dict[str, Any], ToolContext], Awaitable[ToolResult]]


def build_parameter_schema(parameters: List[ToolParameter]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param in parameters:
        properties[param.name] = {"type": param.type, "description": param.description}
        if param.required:
            required.append(param.name)
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


@dataclass(frozen=True)
class CompiledTool:
    name: str
    description: str
    parameters: Dict[str, Any]
    executor: ToolExecutor = field(compare=False, repr=False)

    def definition(self) -> Dict[str, Any]:
        """Function tool entry for a ``session.update`` payload."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def schema_json(self) -> str:
        return json.dumps(self.definition(), sort_keys=True, separators=(",", ":"))

    async def invoke(
        self, args: Dict[str, Any], context: Optional[ToolContext] = None
    ) -> ToolResult:
        return await self.executor(self.name, args, context or ToolContext())


def compile_tool(tool: ToolDefinition, executor: ToolExecutor) -> CompiledTool:
    return CompiledTool(
        name=tool.name,
        description=tool.description,
        parameters=build_parameter_schema(tool.parameters),
        executor=executor,
    )


def compile_agent_tools(agent: AgentDefinition, executor: ToolExecutor) -> List[CompiledTool]:
    return [compile_tool(tool, executor) for tool in agent.tools]
