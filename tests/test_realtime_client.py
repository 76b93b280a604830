"""
Tests for the RealtimeAgentClient transport.

The websocket layer is replaced by a fake RealtimeAPI that records what the
client sends and lets a test inject server events.
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from conftest import FakeGuardrail, FakeRealtimeAPI
from src.agents.runtime import build_realtime_agents
from src.realtime_client.client import RealtimeAgentClient
from src.realtime_client.transport import (
    AGENT_HANDOFF_EVENT,
    CONNECTION_STATE_EVENT,
    GUARDRAIL_TRIPPED_EVENT,
    REALTIME_LOG_EVENT,
)
from src.realtime_client.utils import array_buffer_to_base64, base64_to_pcm16
from src.tools.dispatcher import ToolContext


async def _settle(client):
    for _ in range(5):
        await asyncio.sleep(0)
    await client.flush()


async def _key():
    return "ek_test"


@pytest.fixture
def api():
    return FakeRealtimeAPI()


@pytest.fixture
def executor():
    return AsyncMock(return_value={"ok": True})


@pytest.fixture
def agents(support_scenario, executor):
    return build_realtime_agents(support_scenario.agents, executor)


@pytest.fixture
def client(api):
    return RealtimeAgentClient(api, model="test-model")


async def _open(client, api, agents, **kwargs):
    await client.connect(get_credential=_key, initial_agents=agents, **kwargs)
    api.server({"type": "session.created", "session": {"id": "sess_1"}})
    await _settle(client)
    api.sent.clear()


class TestConnect:
    """Test the connect handshake and agent configuration."""

    @pytest.mark.asyncio
    async def test_session_created_pushes_agent_config(self, client, api, agents):
        states = []
        client.on(CONNECTION_STATE_EVENT, states.append)

        await client.connect(get_credential=_key, initial_agents=agents)
        assert api.connect_args == ("ek_test", "test-model")
        assert states == []

        api.server({"type": "session.created", "session": {"id": "sess_1"}})
        await _settle(client)

        assert states == [{"status": "CONNECTED", "session_id": "sess_1"}]
        update = api.sent[0]
        assert update["type"] == "session.update"
        session = update["session"]
        assert session["instructions"] == "You are supportAgent."
        assert session["voice"] == "sage"
        assert session["input_audio_format"] == "pcm16"
        assert [t["name"] for t in session["tools"]] == [
            "lookup_account",
            "transfer_to_technicalSpecialist",
        ]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_connect_requires_agents(self, client):
        with pytest.raises(ValueError):
            await client.connect(get_credential=_key, initial_agents=[])

    @pytest.mark.asyncio
    async def test_events_before_connect_are_dropped(self, client, api):
        client.send_event({"type": "response.create"})
        client.send_user_text("hello")
        assert api.sent == []

    @pytest.mark.asyncio
    async def test_disconnect_reports_state(self, client, api, agents):
        states = []
        client.on(CONNECTION_STATE_EVENT, states.append)
        await _open(client, api, agents)

        await client.disconnect()

        assert states[-1]["status"] == "DISCONNECTED"
        assert client.is_connected() is False

    @pytest.mark.asyncio
    async def test_socket_close_reports_once(self, client, api, agents):
        states = []
        client.on(CONNECTION_STATE_EVENT, states.append)
        await _open(client, api, agents)

        api.connected = False
        api.dispatch("close", {"error": True, "code": 1006, "reason": ""})
        api.dispatch("close", {"error": True, "code": 1006, "reason": ""})

        assert [s["status"] for s in states] == ["CONNECTED", "DISCONNECTED"]
        assert states[-1]["code"] == 1006

    @pytest.mark.asyncio
    async def test_close_before_session_created_reports_disconnect(self, client, api, agents):
        """A socket dropped during the handshake still reports DISCONNECTED."""
        await client.connect(get_credential=_key, initial_agents=agents)
        waiter = asyncio.create_task(client.wait_for_next(CONNECTION_STATE_EVENT))
        await asyncio.sleep(0)

        api.close(1011, "server error")
        state = await waiter

        assert state == {
            "status": "DISCONNECTED",
            "session_id": None,
            "error": True,
            "code": 1011,
            "reason": "server error",
        }
        assert client._sender_task is None
        assert client.event_handlers[CONNECTION_STATE_EVENT] == []

        await _open(client, api, agents)
        assert client.is_connected() is True
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_while_socket_opens_closes_it(self, agents):
        """The socket opened after disconnect() is closed instead of left running."""
        gate = asyncio.Event()
        api = FakeRealtimeAPI(gate=gate)
        client = RealtimeAgentClient(api, model="test-model")
        states = []
        client.on(CONNECTION_STATE_EVENT, states.append)

        attempt = asyncio.create_task(client.connect(get_credential=_key, initial_agents=agents))
        await asyncio.sleep(0)
        await client.disconnect()
        gate.set()
        await attempt

        assert api.connected is False
        assert api.disconnect_calls == 2
        assert client._sender_task is None
        assert [s["status"] for s in states] == ["DISCONNECTED"]

        api.gate = None
        await _open(client, api, agents)
        assert client.is_connected() is True
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_clears_playback_without_cancel(self, client, api, agents):
        sink = MagicMock()
        await _open(client, api, agents, audio_sink=sink)
        api.server({"type": "response.created", "response": {"id": "resp_1"}})

        await client.disconnect()

        assert api.sent == []
        sink.clear.assert_called_once()

    @pytest.mark.asyncio
    async def test_raw_events_are_logged(self, client, api, agents):
        log = []
        client.on(REALTIME_LOG_EVENT, log.append)
        await _open(client, api, agents)
        assert {entry["event"]["type"] for entry in log} >= {"session.created", "session.update"}
        await client.disconnect()


class TestSendEvent:
    """Test the outbound event surface."""

    @pytest.mark.asyncio
    async def test_rejects_unsupported_event(self, client, api, agents):
        await _open(client, api, agents)
        with pytest.raises(ValueError):
            client.send_event({"type": "session.delete"})
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_turn_detection_survives_agent_switch(self, client, api, agents):
        await _open(client, api, agents)

        client.send_event({"type": "session.update", "session": {"turn_detection": None}})
        await _settle(client)
        assert api.sent[0]["session"] == {"turn_detection": None}

        config = client.agent_session_config(agents[1])
        assert config["turn_detection"] is None
        assert config["instructions"] == "You are technicalSpecialist."
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_user_text(self, client, api, agents):
        await _open(client, api, agents)
        client.send_user_text("my router is blinking")
        await _settle(client)

        assert api.sent_types() == ["conversation.item.create", "response.create"]
        assert api.sent[0]["item"]["content"][0] == {
            "type": "input_text",
            "text": "my router is blinking",
        }
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_microphone_audio(self, client, api, agents):
        await _open(client, api, agents)
        samples = np.array([0.0, 0.5, -0.5], dtype=np.float32)
        client.append_input_audio(samples)
        client.append_input_audio(np.array([], dtype=np.float32))
        await _settle(client)

        assert api.sent_types() == ["input_audio_buffer.append"]
        assert api.sent[0]["audio"] == array_buffer_to_base64(samples)
        await client.disconnect()


class TestFunctionCalls:
    """Test tool calls and handoffs requested by the model."""

    @pytest.mark.asyncio
    async def test_tool_call_result_is_returned(self, client, api, agents, executor):
        await _open(client, api, agents)

        api.server(
            {
                "type": "response.output_item.done",
                "item": {
                    "type": "function_call",
                    "name": "lookup_account",
                    "call_id": "call_1",
                    "arguments": json.dumps({"email": "a@b.c"}),
                },
            }
        )
        await _settle(client)

        executor.assert_awaited_once_with(
            "lookup_account",
            {"email": "a@b.c"},
            ToolContext(agent_name="supportAgent", call_id="call_1", session_id="sess_1"),
        )
        assert api.sent_types() == ["conversation.item.create", "response.create"]
        output = api.sent[0]["item"]
        assert output["type"] == "function_call_output"
        assert output["call_id"] == "call_1"
        assert json.loads(output["output"]) == {"ok": True}
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_unregistered_tool_returns_error(self, client, api, agents, executor):
        await _open(client, api, agents)

        api.server(
            {
                "type": "response.output_item.done",
                "item": {"type": "function_call", "name": "wipe_disk", "call_id": "c2", "arguments": "{}"},
            }
        )
        await _settle(client)

        executor.assert_not_awaited()
        assert "error" in json.loads(api.sent[0]["item"]["output"])
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_malformed_arguments_return_error(self, client, api, agents, executor):
        await _open(client, api, agents)

        api.server(
            {
                "type": "response.output_item.done",
                "item": {"type": "function_call", "name": "lookup_account", "call_id": "c3", "arguments": "{oops"},
            }
        )
        await _settle(client)

        executor.assert_not_awaited()
        assert "error" in json.loads(api.sent[0]["item"]["output"])
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_handoff_switches_agent(self, client, api, agents):
        handoffs = []
        client.on(AGENT_HANDOFF_EVENT, handoffs.append)
        await _open(client, api, agents)

        api.server(
            {
                "type": "response.output_item.done",
                "item": {
                    "type": "function_call",
                    "name": "transfer_to_technicalSpecialist",
                    "call_id": "call_h",
                    "arguments": "{}",
                },
            }
        )
        await _settle(client)

        assert handoffs == [{"agent_name": "technicalSpecialist", "from_agent": "supportAgent"}]
        assert client.active_agent.name == "technicalSpecialist"
        assert api.sent_types() == ["conversation.item.create", "session.update", "response.create"]
        assert json.loads(api.sent[0]["item"]["output"]) == {"assistant": "technicalSpecialist"}
        session = api.sent[1]["session"]
        assert session["instructions"] == "You are technicalSpecialist."
        assert [t["name"] for t in session["tools"]] == ["transfer_to_supportAgent"]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_handoff_outside_set_is_refused(self, client, api, agents):
        handoffs = []
        client.on(AGENT_HANDOFF_EVENT, handoffs.append)
        await _open(client, api, agents)

        api.server(
            {
                "type": "response.output_item.done",
                "item": {"type": "function_call", "name": "transfer_to_ghost", "call_id": "c4", "arguments": "{}"},
            }
        )
        await _settle(client)

        assert handoffs == []
        assert client.active_agent.name == "supportAgent"
        assert "error" in json.loads(api.sent[0]["item"]["output"])
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_non_function_items_are_ignored(self, client, api, agents):
        await _open(client, api, agents)
        api.server({"type": "response.output_item.done", "item": {"type": "message"}})
        await _settle(client)
        assert api.sent == []
        await client.disconnect()


class TestAudioOutput:
    """Test playback, mute and interruption."""

    @pytest.mark.asyncio
    async def test_audio_delta_is_played(self, client, api, agents):
        sink = MagicMock()
        await _open(client, api, agents, audio_sink=sink)
        samples = np.array([1, -2, 3], dtype=np.int16)

        api.server({"type": "response.audio.delta", "delta": base64.b64encode(samples.tobytes()).decode()})

        np.testing.assert_array_equal(sink.write.call_args.args[0], samples)
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_muted_audio_is_dropped(self, client, api, agents):
        sink = MagicMock()
        await _open(client, api, agents, audio_sink=sink)

        client.mute(True)
        api.server({"type": "response.audio.delta", "delta": base64.b64encode(b"\x01\x00").decode()})

        sink.write.assert_not_called()
        sink.clear.assert_called()
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_interrupt_cancels_active_response(self, client, api, agents):
        sink = MagicMock()
        await _open(client, api, agents, audio_sink=sink)
        api.server({"type": "response.created", "response": {"id": "resp_1"}})

        client.interrupt()
        await _settle(client)
        api.server(
            {
                "type": "response.audio.delta",
                "response_id": "resp_1",
                "delta": base64.b64encode(b"\x01\x00").decode(),
            }
        )

        assert api.sent_types() == ["response.cancel"]
        sink.clear.assert_called()
        sink.write.assert_not_called()
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_interrupt_without_response_sends_nothing(self, client, api, agents):
        await _open(client, api, agents)
        api.server({"type": "response.created", "response": {"id": "resp_1"}})
        api.server({"type": "response.done", "response": {"id": "resp_1"}})

        client.interrupt()
        await _settle(client)

        assert api.sent == []
        await client.disconnect()

    def test_odd_length_delta_is_truncated(self):
        assert base64_to_pcm16(base64.b64encode(b"\x01\x00\x02").decode()).tolist() == [1]


class TestGuardrails:
    """Test output moderation on finished transcripts."""

    @pytest.mark.asyncio
    async def test_tripped_guardrail_interrupts(self, client, api, agents):
        sink = MagicMock()
        guardrail = FakeGuardrail("Acme Tech Support", tripped=True)
        tripped = []
        client.on(GUARDRAIL_TRIPPED_EVENT, tripped.append)
        await _open(client, api, agents, audio_sink=sink, guardrails=[guardrail])
        api.server({"type": "response.created", "response": {"id": "resp_1"}})

        api.server({"type": "response.audio_transcript.done", "transcript": "something rude"})
        await _settle(client)

        assert guardrail.checked == ["something rude"]
        assert tripped == [
            {
                "guardrail": "fake_guardrail",
                "category": "OFFENSIVE",
                "rationale": "test",
                "text": "something rude",
            }
        ]
        assert api.sent_types() == ["response.cancel"]
        sink.clear.assert_called()
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_clean_transcript_passes(self, client, api, agents):
        guardrail = FakeGuardrail("Acme Tech Support")
        tripped = []
        client.on(GUARDRAIL_TRIPPED_EVENT, tripped.append)
        await _open(client, api, agents, guardrails=[guardrail])

        api.server({"type": "response.audio_transcript.done", "transcript": "Happy to help"})
        await _settle(client)

        assert guardrail.checked == ["Happy to help"]
        assert tripped == []
        await client.disconnect()
