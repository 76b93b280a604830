"""
Tool Executor / Dispatcher
==========================

Routes a tool invocation by name to one of:

1. an integration family registered for the name's prefix (``gmail_`` ...),
2. a built-in simulated handler registered for the exact name,
3. the default stub, which echoes the arguments back as a success.

``execute`` never raises: every failure is returned to the reasoning layer as
``{"error": ...}`` so a failing tool cannot take the session down. Family
actions may change external state and are never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Protocol

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from src.enums.monitoring import SpanAttr
from src.errors import UnsupportedAction
from utils.ml_logging import get_logger

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)

ToolResult = Dict[str, Any]
SimulatedHandler = Callable[..., Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolContext:
    """Who is calling a tool, for logging and tracing."""

    agent_name: Optional[str] = None
    call_id: Optional[str] = None
    session_id: Optional[str] = None


class ToolFamily(Protocol):
    """An integration family owning every tool name that starts with ``prefix``."""

    name: str
    prefix: str

    async def execute(
        self, tool_name: str, args: Dict[str, Any], context: ToolContext
    ) -> ToolResult: ...


def stub_result(tool_name: str, args: Dict[str, Any]) -> ToolResult:
    return {
        "success": True,
        "message": f"Tool {tool_name} executed successfully",
        "input": args,
    }


class ToolDispatcher:
    def __init__(
        self,
        families: Iterable[ToolFamily] = (),
        handlers: Optional[Dict[str, SimulatedHandler]] = None,
    ) -> None:
        self._families: Dict[str, ToolFamily] = {}
        self._handlers: Dict[str, SimulatedHandler] = {}
        for family in families:
            self.register_family(family)
        for name, handler in (handlers or {}).items():
            self.register_handler(name, handler)

    def register_family(self, family: ToolFamily) -> None:
        if not family.prefix:
            raise ValueError("Tool family prefix must be non-empty.")
        if family.prefix in self._families:
            raise ValueError(f"Tool family prefix '{family.prefix}' already registered.")
        self._families[family.prefix] = family
        logger.debug(f"Registered tool family '{family.name}' for prefix '{family.prefix}'")

    def register_handler(self, name: str, handler: SimulatedHandler) -> None:
        if not callable(handler):
            raise TypeError("Tool handler must be callable.")
        self._handlers[name] = handler

    def family_for(self, tool_name: str) -> Optional[ToolFamily]:
        # Longest prefix wins so nested families can be added later.
        matches = [p for p in self._families if tool_name.startswith(p)]
        if not matches:
            return None
        return self._families[max(matches, key=len)]

    async def execute(
        self,
        tool_name: str,
        args: Optional[Dict[str, Any]] = None,
        context: Optional[ToolContext] = None,
    ) -> ToolResult:
        args = dict(args or {})
        context = context or ToolContext()
        family = self.family_for(tool_name)

        with tracer.start_as_current_span(
            f"tool.{tool_name}",
            kind=SpanKind.INTERNAL,
            attributes={
                SpanAttr.TOOL_NAME.value: tool_name,
                SpanAttr.TOOL_FAMILY.value: family.name if family else "local",
                SpanAttr.AGENT_NAME.value: context.agent_name or "-",
                SpanAttr.TOOL_CALL_ID.value: context.call_id or "-",
            },
        ) as span:
            logger.info(
                f"Calling tool {tool_name} (agent={context.agent_name or '-'}, call_id={context.call_id or '-'})"
            )
            try:
                if family is not None:
                    result = await family.execute(tool_name, args, context)
                elif tool_name in self._handlers:
                    result = await self._handlers[tool_name](**args)
                else:
                    result = stub_result(tool_name, args)
            except UnsupportedAction as e:
                logger.warning(f"{e}")
                result = {"error": str(e)}
            except Exception as e:
                logger.exception(f"Tool {tool_name} failed")
                result = {"error": str(e) or f"Tool {tool_name} failed"}

            if not isinstance(result, dict):
                result = {"result": result}
            if "error" in result:
                span.set_status(Status(StatusCode.ERROR, str(result["error"])))
                span.set_attribute(
                    SpanAttr.REQUIRES_AUTH.value, bool(result.get("requiresAuth"))
                )
            return result
