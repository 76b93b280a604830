# client.py drives a multi-agent conversation over the RealtimeAPI socket:
# per-agent session configuration, tool calls, handoffs and audio output.

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import backoff
import yaml

from src.agents.runtime import RealtimeAgent
from src.realtime_client.api import DEFAULT_REALTIME_MODEL, RealtimeAPI
from src.realtime_client.event_handler import RealtimeEventHandler
from src.realtime_client.transport import (
    AGENT_HANDOFF_EVENT,
    ALLOWED_CLIENT_EVENTS,
    CONNECTION_STATE_EVENT,
    GUARDRAIL_TRIPPED_EVENT,
    REALTIME_LOG_EVENT,
    AudioSink,
    CredentialProvider,
    OutputGuardrail,
)
from src.realtime_client.utils import array_buffer_to_base64, base64_to_pcm16
from src.tools.dispatcher import ToolContext
from utils.ml_logging import get_logger

logger = get_logger(__name__)

HANDOFF_TOOL_PREFIX = "transfer_to_"


def handoff_tool_definition(target: RealtimeAgent) -> dict:
    description = f"Transfer the conversation to {target.name}."
    if target.handoff_description:
        description = f"{description} {target.handoff_description}"
    return {
        "type": "function",
        "name": f"{HANDOFF_TOOL_PREFIX}{target.name}",
        "description": description,
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
        },
    }


class RealtimeAgentClient(RealtimeEventHandler):
    """
    Realtime transport hosting a set of agents on one socket.

    Only one agent is active at a time. Its instructions, voice and tools
    (compiled tools plus one ``transfer_to_<agent>`` tool per handoff target)
    are pushed with ``session.update``; a call to a transfer tool switches the
    active agent and publishes ``agent.handoff``.

    Outbound events are queued and sent in order by a background task, so the
    synchronous methods (``send_event``, ``interrupt`` ...) can be called from
    plain event callbacks.
    """

    def __init__(
        self,
        api: Optional[RealtimeAPI] = None,
        *,
        model: str = DEFAULT_REALTIME_MODEL,
        session_config_path: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.realtime = api or RealtimeAPI()
        self.model = model

        self.default_session_config = {
            "modalities": ["text", "audio"],
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": "whisper-1"},
            "tool_choice": "auto",
            "temperature": 0.8,
        }
        self.session_config: dict = dict(self.default_session_config)
        if session_config_path:
            self._load_session_config_from_yaml(session_config_path)

        self.agents: Dict[str, RealtimeAgent] = {}
        self.active_agent: Optional[RealtimeAgent] = None
        self.audio_sink: Optional[AudioSink] = None
        self.guardrails: List[OutputGuardrail] = []
        self.extra_context: Dict[str, Any] = {}
        self.session_id: Optional[str] = None
        self.muted = False

        self._connected = False
        self._opening = False
        self._current_response_id: Optional[str] = None
        self._discarded_response_id: Optional[str] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._sender_task: Optional[asyncio.Task] = None

        self._add_api_event_handlers()

    def _load_session_config_from_yaml(self, path: str) -> None:
        with open(path, "r") as f:
            config_from_yaml = yaml.safe_load(f)
        if isinstance(config_from_yaml, dict):
            logger.info(f"Loading session config from {path}")
            self.session_config.update(config_from_yaml)
        else:
            logger.warning(f"Session config YAML is not a dict, ignoring: {path}")

    def _add_api_event_handlers(self) -> None:
        self.realtime.on("client.*", self._log_event)
        self.realtime.on("server.*", self._log_event)
        self.realtime.on("server.session.created", self._on_session_created)
        self.realtime.on("server.response.created", self._on_response_created)
        self.realtime.on("server.response.done", self._on_response_done)
        self.realtime.on("server.response.audio.delta", self._on_audio_delta)
        self.realtime.on("server.response.audio_transcript.done", self._on_transcript_done)
        self.realtime.on("server.response.text.done", self._on_transcript_done)
        self.realtime.on("server.response.output_item.done", self._on_output_item_done)
        self.realtime.on("server.error", self._on_error)
        self.realtime.on("close", self._on_close)

    def _log_event(self, event: dict) -> None:
        self.dispatch(
            REALTIME_LOG_EVENT,
            {
                "time": datetime.now(timezone.utc).isoformat(),
                "event": event,
            },
        )

    # ------------------------------------------------------------------ #
    # Transport surface
    # ------------------------------------------------------------------ #
    def is_connected(self) -> bool:
        return self._connected and self.realtime.is_connected()

    async def connect(
        self,
        *,
        get_credential: CredentialProvider,
        initial_agents: Sequence[RealtimeAgent],
        audio_sink: Optional[AudioSink] = None,
        guardrails: Optional[List[OutputGuardrail]] = None,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._opening or self.realtime.is_connected():
            raise RuntimeError("Already connected, use disconnect() first")
        if not initial_agents:
            raise ValueError("At least one agent is required to connect.")

        self.agents = {agent.name: agent for agent in initial_agents}
        self.active_agent = initial_agents[0]
        self.audio_sink = audio_sink
        self.guardrails = list(guardrails or [])
        self.extra_context = dict(extra_context or {})
        self.session_id = None

        # Cleared by disconnect() or a socket close while the handshake runs.
        self._opening = True
        try:
            ephemeral_key = await get_credential()
            if self._opening:
                await self.realtime.connect(ephemeral_key, self.model)
        except Exception:
            self._opening = False
            raise
        if not self._opening:
            logger.info("Connect abandoned; disconnect() was called while the socket was opening")
            await self.realtime.disconnect()
            return
        self._sender_task = asyncio.create_task(self._drain_outbox())
        logger.info(
            f"Realtime socket open; waiting for session.created (agent={self.active_agent.name})"
        )

    async def disconnect(self) -> None:
        was_active = self._connected or self._opening
        self._connected = False
        self._opening = False
        # The socket close ends any in-flight response; only local playback needs clearing.
        self._current_response_id = None
        if self.audio_sink is not None:
            self.audio_sink.clear()
        await self._stop_sender()
        await self.realtime.disconnect()
        if was_active:
            self.dispatch(CONNECTION_STATE_EVENT, {"status": "DISCONNECTED", "session_id": self.session_id})

    def send_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        if event_type not in ALLOWED_CLIENT_EVENTS:
            raise ValueError(f"Unsupported client event: {event_type}")
        data = {k: v for k, v in event.items() if k != "type"}
        if event_type == "session.update":
            self.session_config.update(data.get("session") or {})
        self._enqueue(event_type, data)

    def send_user_text(self, text: str) -> None:
        self._enqueue(
            "conversation.item.create",
            {
                "item": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": text}],
                }
            },
        )
        self._enqueue("response.create")

    def interrupt(self) -> None:
        if self._current_response_id:
            self._discarded_response_id = self._current_response_id
            self._current_response_id = None
            self._enqueue("response.cancel")
        if self.audio_sink is not None:
            self.audio_sink.clear()

    def mute(self, muted: bool) -> None:
        self.muted = bool(muted)
        if self.muted and self.audio_sink is not None:
            self.audio_sink.clear()

    def append_input_audio(self, samples) -> None:
        """Queue microphone samples (float32, int16 or pcm16 bytes)."""
        if len(samples) > 0:
            self._enqueue("input_audio_buffer.append", {"audio": array_buffer_to_base64(samples)})

    async def flush(self) -> None:
        """Wait until every queued event has been handed to the socket."""
        await self._outbox.join()

    # ------------------------------------------------------------------ #
    # Outbound queue
    # ------------------------------------------------------------------ #
    def _enqueue(self, event_name: str, data: Optional[dict] = None) -> None:
        if not self.realtime.is_connected():
            logger.warning(f"Dropping {event_name}: realtime session is not connected")
            return
        self._outbox.put_nowait((event_name, data or {}))

    @backoff.on_exception(backoff.expo, Exception, max_tries=3)
    async def safe_send(self, event_name: str, data: Optional[dict] = None) -> None:
        await self.realtime.send(event_name, data)

    async def _drain_outbox(self) -> None:
        while True:
            event_name, data = await self._outbox.get()
            try:
                await self.safe_send(event_name, data)
            except Exception as e:
                logger.error(f"Failed to send {event_name} after retries: {e}")
            finally:
                self._outbox.task_done()

    async def _stop_sender(self) -> None:
        task, self._sender_task = self._sender_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._discard_outbox()

    def _discard_outbox(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    # ------------------------------------------------------------------ #
    # Agent configuration
    # ------------------------------------------------------------------ #
    def agent_session_config(self, agent: RealtimeAgent) -> dict:
        tools = [tool.definition() for tool in agent.tools]
        tools += [
            handoff_tool_definition(self.agents[name])
            for name in agent.handoffs
            if name in self.agents
        ]
        return {
            **self.session_config,
            "instructions": agent.instructions,
            "voice": agent.voice,
            "tools": tools,
        }

    def _push_agent_config(self) -> None:
        self._enqueue("session.update", {"session": self.agent_session_config(self.active_agent)})

    def _tool_context(self, call_id: Optional[str]) -> ToolContext:
        return ToolContext(
            agent_name=self.active_agent.name if self.active_agent else None,
            call_id=call_id,
            session_id=self.extra_context.get("session_id") or self.session_id,
        )

    # ------------------------------------------------------------------ #
    # Server events
    # ------------------------------------------------------------------ #
    def _on_session_created(self, event: dict) -> None:
        self.session_id = (event.get("session") or {}).get("id")
        self._opening = False
        self._connected = True
        self._push_agent_config()
        logger.info(f"Realtime session {self.session_id} created")
        self.dispatch(CONNECTION_STATE_EVENT, {"status": "CONNECTED", "session_id": self.session_id})

    def _on_response_created(self, event: dict) -> None:
        self._current_response_id = (event.get("response") or {}).get("id")

    def _on_response_done(self, event: dict) -> None:
        response_id = (event.get("response") or {}).get("id")
        if response_id == self._current_response_id:
            self._current_response_id = None

    def _on_audio_delta(self, event: dict) -> None:
        if self.muted or self.audio_sink is None:
            return
        if event.get("response_id") and event.get("response_id") == self._discarded_response_id:
            return
        self.audio_sink.write(base64_to_pcm16(event.get("delta", "")))

    def _on_error(self, event: dict) -> None:
        error = event.get("error") or {}
        logger.error(f"Realtime error: {error.get('type')}: {error.get('message')}")

    def _on_close(self, event: dict) -> None:
        if not (self._connected or self._opening):
            return
        self._connected = False
        self._opening = False
        if self._sender_task is not None:
            self._sender_task.cancel()
            self._sender_task = None
        self._discard_outbox()
        logger.warning(f"Realtime session {self.session_id} closed: {event}")
        self.dispatch(CONNECTION_STATE_EVENT, {"status": "DISCONNECTED", "session_id": self.session_id, **event})

    async def _on_transcript_done(self, event: dict) -> None:
        text = event.get("transcript") or event.get("text") or ""
        if not text or not self.guardrails:
            return
        for guardrail in self.guardrails:
            result = await guardrail.check(text)
            if result.tripped:
                logger.warning(f"Guardrail {guardrail.name} tripped: {result.category}")
                self.interrupt()
                self.dispatch(
                    GUARDRAIL_TRIPPED_EVENT,
                    {
                        "guardrail": guardrail.name,
                        "category": result.category,
                        "rationale": result.rationale,
                        "text": text,
                    },
                )
                return

    async def _on_output_item_done(self, event: dict) -> None:
        item = event.get("item") or {}
        if item.get("type") != "function_call":
            return
        name = item.get("name", "")
        call_id = item.get("call_id")

        if name.startswith(HANDOFF_TOOL_PREFIX):
            target = name[len(HANDOFF_TOOL_PREFIX):]
            if self._handoff(target, call_id):
                return

        output = await self._call_tool(name, item.get("arguments"), call_id)
        self._enqueue(
            "conversation.item.create",
            {"item": {"type": "function_call_output", "call_id": call_id, "output": json.dumps(output)}},
        )
        self._enqueue("response.create")

    async def _call_tool(self, name: str, arguments: Optional[str], call_id: Optional[str]) -> dict:
        tool = self.active_agent.tool(name) if self.active_agent else None
        if tool is None:
            logger.warning(f"Tool '{name}' not registered for agent {self.active_agent and self.active_agent.name}")
            return {"error": f"Tool '{name}' not registered."}
        try:
            args = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError as e:
            logger.error(f"Invalid arguments for tool {name}: {e}")
            return {"error": f"Invalid arguments for tool {name}."}
        logger.info(f"Calling tool {name} with arguments: {args}")
        return await tool.invoke(args, self._tool_context(call_id))

    def _handoff(self, target: str, call_id: Optional[str]) -> bool:
        source = self.active_agent
        if source is None or target not in source.handoffs or target not in self.agents:
            logger.warning(f"Ignoring handoff to unknown agent '{target}'")
            return False

        self.active_agent = self.agents[target]
        logger.info(f"Handoff {source.name} -> {target}")
        self._enqueue(
            "conversation.item.create",
            {
                "item": {
                    "type": "function_call_output",
                    "call_id": call_id,
                    "output": json.dumps({"assistant": target}),
                }
            },
        )
        self._push_agent_config()
        self.dispatch(AGENT_HANDOFF_EVENT, {"agent_name": target, "from_agent": source.name})
        self._enqueue("response.create")
        return True
