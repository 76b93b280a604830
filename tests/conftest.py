"""
Shared fakes and fixtures for the voice session tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from src.agents.models import AgentDefinition, Scenario, ToolDefinition, ToolParameter
from src.realtime_client.event_handler import RealtimeEventHandler
from src.realtime_client.transport import CONNECTION_STATE_EVENT, GuardrailResult
from src.storage.credentials import CredentialStore, ExternalCredential
from src.storage.kv_store import InMemoryKeyValueStore
from src.tools.gmail import ProxyResponse

NOW_MS = 1_700_000_000_000


class FakeTransport(RealtimeEventHandler):
    """Records every call the orchestrator makes on the transport."""

    def __init__(
        self,
        fail_with: Optional[Exception] = None,
        auto_confirm: bool = False,
        connect_gate: Optional[asyncio.Event] = None,
    ):
        super().__init__()
        self.fail_with = fail_with
        self.auto_confirm = auto_confirm
        self.connect_gate = connect_gate
        self.connect_calls: List[Dict[str, Any]] = []
        self.disconnect_calls = 0
        self.events: List[Dict[str, Any]] = []
        self.texts: List[str] = []
        self.interrupts = 0
        self.mute_calls: List[bool] = []
        self.calls: List[str] = []

    async def connect(self, **kwargs):
        """Mock connect; optionally confirms the session like a real transport."""
        self.connect_calls.append(kwargs)
        self.calls.append("connect")
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        if self.auto_confirm:
            self.dispatch(CONNECTION_STATE_EVENT, {"status": "CONNECTED", "session_id": "sess_1"})

    async def disconnect(self):
        self.disconnect_calls += 1
        self.calls.append("disconnect")

    def send_user_text(self, text: str):
        self.texts.append(text)
        self.calls.append("send_user_text")

    def send_event(self, event: Dict[str, Any]):
        self.events.append(event)
        self.calls.append(event["type"])

    def interrupt(self):
        self.interrupts += 1
        self.calls.append("interrupt")

    def mute(self, muted: bool):
        self.mute_calls.append(muted)

    # helpers
    def event_types(self) -> List[str]:
        return [e["type"] for e in self.events]

    def greetings(self) -> List[Dict[str, Any]]:
        return [
            e
            for e in self.events
            if e["type"] == "conversation.item.create"
            and e["item"]["content"][0].get("text") == "hi"
        ]


class FakeRealtimeAPI(RealtimeEventHandler):
    """
    Stands in for the websocket layer under RealtimeAgentClient.

    Records what the client sends and lets a test inject server events;
    ``gate`` holds connect() open until set.
    """

    def __init__(self, gate: Optional[asyncio.Event] = None):
        super().__init__()
        self.gate = gate
        self.connected = False
        self.connect_args = None
        self.disconnect_calls = 0
        self.sent: List[Dict[str, Any]] = []

    def is_connected(self):
        return self.connected

    async def connect(self, ephemeral_key, model):
        if self.gate is not None:
            await self.gate.wait()
        self.connected = True
        self.connect_args = (ephemeral_key, model)

    async def send(self, event_name, data=None):
        event = {"type": event_name, **(data or {})}
        self.sent.append(event)
        self.dispatch(f"client.{event_name}", event)
        self.dispatch("client.*", event)

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    # helpers
    def server(self, event: Dict[str, Any]):
        self.dispatch(f"server.{event['type']}", event)
        self.dispatch("server.*", event)

    def close(self, code: int = 1006, reason: str = ""):
        """Simulate the server dropping the socket."""
        self.connected = False
        self.dispatch("close", {"error": code != 1000, "code": code, "reason": reason})

    def sent_types(self) -> List[str]:
        return [e["type"] for e in self.sent]


class FakeKeyProvider:
    """Ephemeral key provider; ``gate`` holds fetch() open until set."""

    def __init__(self, value: Optional[str] = "ek_test", gate: Optional[asyncio.Event] = None):
        self.value = value
        self.gate = gate
        self.calls = 0

    async def fetch(self) -> Optional[str]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.value


class FakeProxy:
    """External-service proxy returning a canned response."""

    def __init__(self, response: Optional[ProxyResponse] = None, exc: Optional[Exception] = None):
        self.response = response or ProxyResponse(200, {"success": True})
        self.exc = exc
        self.calls: List[Dict[str, Any]] = []

    async def call(self, action, access_token, params):
        self.calls.append({"action": action, "access_token": access_token, "params": params})
        if self.exc is not None:
            raise self.exc
        return self.response


class FakeGuardrail:
    name = "fake_guardrail"

    def __init__(self, company_name: str, tripped: bool = False):
        self.company_name = company_name
        self.tripped = tripped
        self.checked: List[str] = []

    async def check(self, text: str) -> GuardrailResult:
        self.checked.append(text)
        if self.tripped:
            return GuardrailResult(tripped=True, category="OFFENSIVE", rationale="test")
        return GuardrailResult(tripped=False)


def make_agent(name: str, agent_id: Optional[str] = None, **kwargs) -> AgentDefinition:
    kwargs.setdefault("instructions", f"You are {name}.")
    kwargs.setdefault("voice", "sage")
    return AgentDefinition(id=agent_id or name.lower(), name=name, **kwargs)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def credentials(store):
    return CredentialStore(store, clock=lambda: NOW_MS)


@pytest.fixture
def connected_credentials(credentials):
    credentials.save(
        ExternalCredential(
            access_token="ya29.secret-token",
            refresh_token="1//refresh-secret",
            account_email="user@example.com",
            expires_at=NOW_MS + 3_600_000,
        )
    )
    return credentials


@pytest.fixture
def send_email_tool():
    return ToolDefinition(
        id="tool-send",
        name="gmail_send_email",
        description="Send a new email to a recipient.",
        parameters=[
            ToolParameter(name="to", required=True, description="Recipient"),
            ToolParameter(name="subject", required=True, description="Subject line"),
            ToolParameter(name="body", required=True, description="Body text"),
        ],
    )


@pytest.fixture
def support_scenario():
    """Two agents that can hand off to each other."""
    support = make_agent(
        "supportAgent",
        "support",
        handoffs=["specialist"],
        tools=[ToolDefinition(name="lookup_account", description="Look up an account")],
    )
    specialist = make_agent("technicalSpecialist", "specialist", handoffs=["support"])
    return Scenario(
        key="customerSupport",
        agents=[support, specialist],
        guardrail_display_name="Acme Tech Support",
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def key_provider():
    return FakeKeyProvider()


@pytest.fixture
def guardrails():
    """Collects every guardrail the controller creates."""
    return []


@pytest.fixture
def guardrail_factory(guardrails):
    def factory(company_name: str) -> FakeGuardrail:
        guardrail = FakeGuardrail(company_name)
        guardrails.append(guardrail)
        return guardrail

    return factory

