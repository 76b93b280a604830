"""
Tests for the Session Lifecycle Controller
==========================================

Exercises the connect state machine against a fake transport: re-entrancy,
credential and transport failures, agent ordering, guardrail binding and the
configuration push that follows a confirmed connection.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeKeyProvider, FakeTransport, make_agent
from src.agents.models import Scenario
from src.enums.session import SessionStatus, TurnMode
from src.realtime_client.transport import CONNECTION_STATE_EVENT
from src.session.controller import VAD_TURN_DETECTION, SessionLifecycleController, order_agents
from src.storage.preferences import SessionPreferences


def _wire(transport, controller):
    transport.on(
        CONNECTION_STATE_EVENT,
        lambda e: controller.on_connection_change(e["status"], e.get("session_id")),
    )
    return controller


@pytest.fixture
def controller(transport, key_provider, guardrail_factory, support_scenario):
    transport.auto_confirm = True
    ctrl = SessionLifecycleController(
        transport, key_provider, AsyncMock(), guardrail_factory=guardrail_factory
    )
    ctrl.load_scenario(support_scenario)
    return _wire(transport, ctrl)


@pytest.fixture
def statuses(controller):
    seen = []
    controller.add_status_listener(lambda status, error: seen.append((status, error)))
    return seen


class TestOrderAgents:
    """Test initial-agent ordering."""

    def test_selected_agent_moves_first(self):
        agents = [make_agent("a"), make_agent("b"), make_agent("c")]
        assert [a.name for a in order_agents(agents, "c")] == ["c", "a", "b"]

    def test_unknown_or_first_keeps_order(self):
        agents = [make_agent("a"), make_agent("b")]
        assert [a.name for a in order_agents(agents, "a")] == ["a", "b"]
        assert [a.name for a in order_agents(agents, "zzz")] == ["a", "b"]
        assert [a.name for a in order_agents(agents, None)] == ["a", "b"]


class TestConnect:
    """Test SessionLifecycleController.connect."""

    @pytest.mark.asyncio
    async def test_successful_connect(self, controller, transport, statuses):
        assert await controller.connect() is True

        assert controller.state.status is SessionStatus.CONNECTED
        assert controller.state.session_id == "sess_1"
        assert [s for s, _ in statuses] == [SessionStatus.CONNECTING, SessionStatus.CONNECTED]
        call = transport.connect_calls[0]
        assert await call["get_credential"]() == "ek_test"
        assert call["extra_context"] == {"scenario_key": "customerSupport"}

    @pytest.mark.asyncio
    async def test_connect_while_connected_is_noop(self, controller, transport):
        await controller.connect()
        assert await controller.connect() is False
        assert len(transport.connect_calls) == 1

    @pytest.mark.asyncio
    async def test_rapid_double_connect_opens_one_session(self, transport, guardrail_factory, support_scenario):
        gate = asyncio.Event()
        provider = FakeKeyProvider(gate=gate)
        transport.auto_confirm = True
        ctrl = _wire(
            transport,
            SessionLifecycleController(
                transport, provider, AsyncMock(), guardrail_factory=guardrail_factory
            ),
        )
        ctrl.load_scenario(support_scenario)

        first = asyncio.create_task(ctrl.connect())
        await asyncio.sleep(0)
        assert ctrl.state.status is SessionStatus.CONNECTING
        assert await ctrl.connect() is False

        gate.set()
        assert await first is True
        assert provider.calls == 1
        assert len(transport.connect_calls) == 1

    @pytest.mark.asyncio
    async def test_disconnect_during_key_fetch_abandons_attempt(
        self, transport, guardrail_factory, support_scenario
    ):
        gate = asyncio.Event()
        ctrl = SessionLifecycleController(
            transport,
            FakeKeyProvider(gate=gate),
            AsyncMock(),
            guardrail_factory=guardrail_factory,
        )
        ctrl.load_scenario(support_scenario)

        attempt = asyncio.create_task(ctrl.connect())
        await asyncio.sleep(0)
        await ctrl.disconnect()
        gate.set()

        assert await attempt is False
        assert transport.connect_calls == []
        assert ctrl.state.status is SessionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_while_transport_opens_abandons_attempt(self, guardrail_factory, support_scenario):
        gate = asyncio.Event()
        transport = FakeTransport(auto_confirm=True, connect_gate=gate)
        ctrl = _wire(
            transport,
            SessionLifecycleController(
                transport, FakeKeyProvider(), AsyncMock(), guardrail_factory=guardrail_factory
            ),
        )
        ctrl.load_scenario(support_scenario)

        attempt = asyncio.create_task(ctrl.connect())
        await asyncio.sleep(0)
        assert transport.calls == ["connect"]
        await ctrl.disconnect()
        gate.set()

        assert await attempt is False
        assert ctrl.state.status is SessionStatus.DISCONNECTED
        assert transport.calls == ["connect", "disconnect", "disconnect"]
        assert transport.events == []

        transport.connect_gate = None
        assert await ctrl.connect() is True
        assert ctrl.state.status is SessionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_missing_key_aborts(self, transport, guardrail_factory, support_scenario):
        ctrl = SessionLifecycleController(
            transport, FakeKeyProvider(value=None), AsyncMock(), guardrail_factory=guardrail_factory
        )
        ctrl.load_scenario(support_scenario)
        errors = []
        ctrl.add_status_listener(lambda status, error: errors.append(error))

        assert await ctrl.connect() is False

        assert ctrl.state.status is SessionStatus.DISCONNECTED
        assert transport.connect_calls == []
        assert str(ctrl.last_error) == "No ephemeral key provided by the server"
        assert ctrl.last_error.reason == "credential"
        assert errors[-1] is ctrl.last_error

    @pytest.mark.asyncio
    async def test_key_fetch_exception_aborts(self, transport, guardrail_factory, support_scenario):
        provider = FakeKeyProvider()
        provider.fetch = AsyncMock(side_effect=RuntimeError("backend unreachable"))
        ctrl = SessionLifecycleController(
            transport, provider, AsyncMock(), guardrail_factory=guardrail_factory
        )
        ctrl.load_scenario(support_scenario)

        assert await ctrl.connect() is False
        assert ctrl.last_error.reason == "credential"
        assert transport.connect_calls == []

    @pytest.mark.asyncio
    async def test_transport_failure_returns_to_disconnected(
        self, key_provider, guardrail_factory, support_scenario
    ):
        transport = FakeTransport(fail_with=RuntimeError("handshake failed"))
        ctrl = SessionLifecycleController(
            transport, key_provider, AsyncMock(), guardrail_factory=guardrail_factory
        )
        ctrl.load_scenario(support_scenario)

        assert await ctrl.connect() is False
        assert ctrl.state.status is SessionStatus.DISCONNECTED
        assert str(ctrl.last_error) == "handshake failed"
        assert ctrl.last_error.reason == "transport"

        transport.fail_with = None
        assert await ctrl.connect() is True
        assert ctrl.last_error is None

    @pytest.mark.asyncio
    async def test_invalid_agent_blocks_connect(self, controller, transport):
        bad = Scenario(key="broken", agents=[make_agent("agent", voice="nova")])
        controller.load_scenario(bad)

        assert await controller.connect() is False
        assert controller.last_error.reason == "validation"
        assert "voice" in str(controller.last_error)
        assert transport.connect_calls == []

    @pytest.mark.asyncio
    async def test_no_agents_blocks_connect(self, transport, key_provider, guardrail_factory):
        ctrl = SessionLifecycleController(
            transport, key_provider, AsyncMock(), guardrail_factory=guardrail_factory
        )
        assert await ctrl.connect() is False
        assert ctrl.last_error.reason == "config"
        assert key_provider.calls == 0

    @pytest.mark.asyncio
    async def test_selected_agent_is_first_and_handoffs_are_names(self, controller, transport, support_scenario):
        controller.load_scenario(support_scenario, "technicalSpecialist")
        await controller.connect()

        agents = transport.connect_calls[0]["initial_agents"]
        assert [a.name for a in agents] == ["technicalSpecialist", "supportAgent"]
        assert agents[0].handoffs == ["supportAgent"]
        assert agents[1].handoffs == ["technicalSpecialist"]
        assert [t.name for t in agents[1].tools] == ["lookup_account"]
        assert controller.state.active_agent_name == "technicalSpecialist"

    @pytest.mark.asyncio
    async def test_guardrail_bound_to_display_name(self, controller, transport, guardrails):
        await controller.connect()
        assert [g.company_name for g in guardrails] == ["Acme Tech Support"]
        assert transport.connect_calls[0]["guardrails"] == [guardrails[0]]

    @pytest.mark.asyncio
    async def test_guardrail_falls_back_to_scenario_key(self, controller, guardrails):
        controller.load_scenario(Scenario(key="plain", agents=[make_agent("solo")]))
        await controller.connect()
        assert guardrails[0].company_name == "plain"


class TestConfigurationPush:
    """Test what is sent once the transport confirms the session."""

    @pytest.mark.asyncio
    async def test_greets_exactly_once(self, controller, transport):
        await controller.connect()

        assert transport.event_types() == [
            "session.update",
            "conversation.item.create",
            "response.create",
        ]
        assert transport.events[0]["session"]["turn_detection"] == VAD_TURN_DETECTION
        assert len(transport.greetings()) == 1

        transport.dispatch(CONNECTION_STATE_EVENT, {"status": "CONNECTED", "session_id": "sess_1"})
        assert len(transport.greetings()) == 1

    @pytest.mark.asyncio
    async def test_push_to_talk_disables_turn_detection(
        self, store, transport, key_provider, guardrail_factory, support_scenario
    ):
        prefs = SessionPreferences(store)
        prefs.push_to_talk = True
        transport.auto_confirm = True
        ctrl = _wire(
            transport,
            SessionLifecycleController(
                transport,
                key_provider,
                AsyncMock(),
                preferences=prefs,
                guardrail_factory=guardrail_factory,
            ),
        )
        ctrl.load_scenario(support_scenario)
        assert ctrl.state.turn_mode is TurnMode.PUSH_TO_TALK

        await ctrl.connect()

        update = transport.events[0]
        assert update["type"] == "session.update"
        assert update["session"]["turn_detection"] is None

    @pytest.mark.asyncio
    async def test_toggle_push_to_talk_while_connected(self, controller, transport):
        await controller.connect()
        transport.events.clear()

        controller.set_push_to_talk(True)
        controller.set_push_to_talk(False)

        assert transport.event_types() == ["session.update", "session.update"]
        assert transport.events[0]["session"]["turn_detection"] is None
        assert transport.events[1]["session"]["turn_detection"] == VAD_TURN_DETECTION
        assert transport.greetings() == []

    def test_toggle_push_to_talk_while_disconnected_sends_nothing(self, controller, transport, store):
        prefs = SessionPreferences(store)
        controller.preferences = prefs
        controller.set_push_to_talk(True)
        assert transport.events == []
        assert SessionPreferences(store).push_to_talk is True

    @pytest.mark.asyncio
    async def test_playback_preference_applied_on_connect(self, controller, transport):
        controller.set_audio_playback(False)
        assert transport.mute_calls == []

        await controller.connect()
        assert transport.mute_calls == [True]

        controller.set_audio_playback(True)
        assert transport.mute_calls == [True, False]


class TestConnectionChanges:
    """Test transport-reported connection changes."""

    @pytest.mark.asyncio
    async def test_stale_connected_after_teardown_is_ignored(self, controller, transport):
        controller.on_connection_change("CONNECTED", "late")
        assert controller.state.status is SessionStatus.DISCONNECTED
        assert transport.events == []

    @pytest.mark.asyncio
    async def test_transport_close_reports_failure(self, controller, transport, statuses):
        await controller.connect()
        controller.state.is_user_speaking = True

        transport.dispatch(CONNECTION_STATE_EVENT, {"status": "DISCONNECTED"})

        assert controller.state.status is SessionStatus.DISCONNECTED
        assert controller.state.is_user_speaking is False
        assert controller.state.session_id is None
        status, error = statuses[-1]
        assert status is SessionStatus.DISCONNECTED
        assert error is not None

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, controller, transport):
        await controller.disconnect()
        assert transport.disconnect_calls == 0

        await controller.connect()
        await controller.disconnect()
        await controller.disconnect()
        assert transport.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_scenario_locked_while_active(self, controller, support_scenario):
        await controller.connect()
        with pytest.raises(RuntimeError):
            controller.load_scenario(support_scenario)
