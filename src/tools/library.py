"""
Ready-made tool definitions offered to the builder, grouped by integration.

Gmail tools are wired to :class:`~src.tools.gmail.GmailToolFamily`; calendar
tools have no backend yet and resolve to the dispatcher's stub.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.agents.models import ToolDefinition, ToolParameter


def _tool(name: str, description: str, *parameters: ToolParameter) -> ToolDefinition:
    # Library tools use their name as a stable id.
    return ToolDefinition(id=name, name=name, description=description, parameters=list(parameters))


GMAIL_TOOLS: List[ToolDefinition] = [
    _tool(
        "gmail_list_unread",
        "List the latest unread emails from the user's inbox. Returns sender, subject, and snippet.",
        ToolParameter(
            name="limit",
            type="number",
            description="The maximum number of emails to retrieve (default: 5)",
        ),
    ),
    _tool(
        "gmail_read_email",
        "Read the full content of a specific email by its ID.",
        ToolParameter(
            name="email_id",
            description="The unique ID of the email to read",
            required=True,
        ),
    ),
    _tool(
        "gmail_send_email",
        "Send a new email to a recipient.",
        ToolParameter(name="to", description="The email address of the recipient", required=True),
        ToolParameter(name="subject", description="The subject line of the email", required=True),
        ToolParameter(name="body", description="The body content of the email", required=True),
    ),
    _tool(
        "gmail_delete_email",
        "Move an email to the trash.",
        ToolParameter(
            name="email_id",
            description="The unique ID of the email to delete",
            required=True,
        ),
    ),
    _tool(
        "gmail_create_draft",
        "Create a draft email without sending it.",
        ToolParameter(name="to", description="The email address of the recipient"),
        ToolParameter(name="subject", description="The subject line of the email"),
        ToolParameter(name="body", description="The body content of the email", required=True),
    ),
]

CALENDAR_TOOLS: List[ToolDefinition] = [
    _tool(
        "calendar_list_events",
        "List upcoming calendar events.",
        ToolParameter(name="limit", type="number", description="Max events to fetch"),
    ),
    _tool(
        "calendar_create_event",
        "Schedule a new event on the calendar.",
        ToolParameter(name="summary", description="Title of the event", required=True),
        ToolParameter(name="startTime", description="ISO string for start time", required=True),
        ToolParameter(name="endTime", description="ISO string for end time", required=True),
    ),
]


@dataclass(frozen=True)
class ToolLibrary:
    id: str
    name: str
    description: str
    tools: List[ToolDefinition] = field(default_factory=list)


TOOL_LIBRARIES: List[ToolLibrary] = [
    ToolLibrary(
        id="gmail",
        name="Gmail Integration",
        description="Read, send, and manage emails via Gmail",
        tools=GMAIL_TOOLS,
    ),
    ToolLibrary(
        id="calendar",
        name="Google Calendar",
        description="Manage events and check availability",
        tools=CALENDAR_TOOLS,
    ),
]


def get_library(library_id: str) -> Optional[ToolLibrary]:
    return next((lib for lib in TOOL_LIBRARIES if lib.id == library_id), None)


def library_tools_by_name() -> Dict[str, ToolDefinition]:
    return {tool.name: tool for lib in TOOL_LIBRARIES for tool in lib.tools}
