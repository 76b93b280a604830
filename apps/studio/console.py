"""
Text console for a voice session.

Runs one orchestrator against the realtime service using the studio backend
for session keys and the Gmail proxy. Agent replies are printed from their
transcripts; audio is not played.

    python -m apps.studio.console --scenario customerSupport --agent supportAgent

Commands: ``/agent <name>``, ``/scenario <key>``, ``/ptt on|off``,
``/connect``, ``/quit``. Any other line is sent as a user message.
"""

import argparse
import asyncio
from typing import Optional

from apps.studio.backend import settings
from src.realtime_client.api import RealtimeAPI
from src.realtime_client.client import RealtimeAgentClient
from src.realtime_client.transport import GUARDRAIL_TRIPPED_EVENT, REALTIME_LOG_EVENT
from src.session.ephemeral import EphemeralKeyProvider
from src.session.guardrails import ModerationGuardrail
from src.session.orchestrator import VoiceSessionOrchestrator
from src.storage.credentials import CredentialStore
from src.storage.kv_store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from src.tools.defaults import create_default_dispatcher
from utils.ml_logging import get_logger

logger = get_logger("console")


def _print_transcripts(entry: dict) -> None:
    event = entry.get("event") or {}
    if event.get("type") == "response.audio_transcript.done":
        print(f"\nagent> {event.get('transcript', '')}")
    elif event.get("type") == "conversation.item.input_audio_transcription.completed":
        print(f"\nyou (voice)> {event.get('transcript', '')}")


def build_orchestrator(store: KeyValueStore) -> VoiceSessionOrchestrator:
    base_url = settings.APP_URL.rstrip("/")
    transport = RealtimeAgentClient(RealtimeAPI(settings.REALTIME_URL), model=settings.REALTIME_MODEL)
    dispatcher = create_default_dispatcher(
        CredentialStore(store), proxy_url=f"{base_url}/api/gmail/proxy"
    )
    orchestrator = VoiceSessionOrchestrator(
        transport,
        EphemeralKeyProvider(f"{base_url}/api/session"),
        dispatcher.execute,
        store=store,
        guardrail_factory=lambda name: ModerationGuardrail(name, model=settings.GUARDRAIL_MODEL),
    )
    transport.on(REALTIME_LOG_EVENT, _print_transcripts)
    transport.on(
        GUARDRAIL_TRIPPED_EVENT,
        lambda e: print(f"\n[guardrail] {e['category']}: {e['rationale']}"),
    )
    return orchestrator


async def _handle_command(orchestrator: VoiceSessionOrchestrator, line: str) -> bool:
    command, _, arg = line.partition(" ")
    arg = arg.strip()
    if command == "/quit":
        return False
    if command == "/agent" and arg:
        await orchestrator.select_agent(arg)
    elif command == "/scenario" and arg:
        await orchestrator.select_scenario(arg)
    elif command == "/ptt":
        orchestrator.set_push_to_talk(arg == "on")
    elif command == "/connect":
        await orchestrator.toggle_connection()
    else:
        print(f"Unknown command: {line}")
    print(f"[{orchestrator.state.status}] {orchestrator.session_context}")
    return True


async def run(scenario: Optional[str], agent: Optional[str]) -> None:
    store: KeyValueStore = (
        RedisKeyValueStore(host=settings.REDIS_HOST, port=settings.REDIS_PORT)
        if settings.REDIS_HOST
        else InMemoryKeyValueStore()
    )
    orchestrator = build_orchestrator(store)
    if not await orchestrator.start(scenario, agent):
        print(f"Connection failed: {orchestrator.controller.last_error}")

    try:
        while True:
            line = (await asyncio.to_thread(input, "> ")).strip()
            if line.startswith("/"):
                if not await _handle_command(orchestrator, line):
                    break
            elif line:
                orchestrator.send_text_message(line)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await orchestrator.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Text console for a voice agent session")
    parser.add_argument("--scenario", default=None, help="Scenario key, e.g. customerSupport")
    parser.add_argument("--agent", default=None, help="Initially active agent name")
    args = parser.parse_args()
    asyncio.run(run(args.scenario, args.agent))


if __name__ == "__main__":
    main()
