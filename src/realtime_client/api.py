import asyncio
import json
import uuid
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from src.realtime_client.event_handler import RealtimeEventHandler
from utils.ml_logging import get_logger

logger = get_logger(__name__)

DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2025-06-03"


class RealtimeAPI(RealtimeEventHandler):
    """
    Handles the WebSocket connection to the OpenAI Realtime API.

    Server events are re-dispatched as ``server.<type>`` and ``server.*``;
    sent events as ``client.<type>`` and ``client.*``. When the socket closes,
    ``close`` is dispatched with ``{"error": bool, "code", "reason"}``.
    """

    def __init__(self, url: str = DEFAULT_REALTIME_URL) -> None:
        super().__init__()
        self.url = url
        self.ws = None
        self._receive_task: Optional[asyncio.Task] = None

    def is_connected(self) -> bool:
        """
        Check if WebSocket connection is active.

        Returns:
            bool: True if connected, False otherwise.
        """
        return self.ws is not None

    async def connect(self, ephemeral_key: str, model: str = DEFAULT_REALTIME_MODEL) -> None:
        """
        Connect using a short-lived session key minted by the backend.
        """
        if self.is_connected():
            raise RuntimeError("Already connected")

        connection_url = f"{self.url}?model={model}"
        logger.info(f"Connecting to Realtime API at {connection_url}")
        try:
            self.ws = await websockets.connect(
                connection_url,
                additional_headers={
                    "Authorization": f"Bearer {ephemeral_key}",
                    "OpenAI-Beta": "realtime=v1",
                },
            )
        except Exception as e:
            logger.error(f"Failed to connect to WebSocket: {e}")
            raise
        logger.debug(f"Connected to {self.url}")
        self._receive_task = asyncio.create_task(self._receive_messages())

    async def _receive_messages(self) -> None:
        """
        Listen for messages from the WebSocket and dispatch them.
        """
        close_event = {"error": False, "code": None, "reason": ""}
        try:
            async for message in self.ws:
                try:
                    event = json.loads(message)
                except json.JSONDecodeError:
                    logger.error("Discarding non-JSON realtime message")
                    continue

                if event.get("type") == "error":
                    logger.error(f"Realtime API error event: {event}")

                self.dispatch(f"server.{event.get('type')}", event)
                self.dispatch("server.*", event)
        except ConnectionClosed as e:
            rcvd = e.rcvd
            close_event = {
                "error": rcvd is None or rcvd.code != 1000,
                "code": rcvd.code if rcvd else None,
                "reason": rcvd.reason if rcvd else "",
            }
            logger.warning(f"WebSocket closed: {close_event}")
        finally:
            self.ws = None
            self.dispatch("close", close_event)

    async def send(self, event_name: str, data: dict = None) -> None:
        """
        Send an event over the WebSocket connection.

        Args:
            event_name (str): The event type.
            data (dict, optional): Additional payload data.
        """
        if not self.is_connected():
            raise RuntimeError("RealtimeAPI is not connected")

        data = data or {}
        if not isinstance(data, dict):
            raise TypeError("Data must be a dictionary")

        event = {"event_id": self._generate_id("evt_"), "type": event_name, **data}

        self.dispatch(f"client.{event_name}", event)
        self.dispatch("client.*", event)

        try:
            await self.ws.send(json.dumps(event))
        except Exception as e:
            logger.error(f"Error sending WebSocket message: {e}")
            raise

    def _generate_id(self, prefix: str) -> str:
        return f"{prefix}{uuid.uuid4().hex[:21]}"

    async def disconnect(self) -> None:
        """
        Disconnect from the WebSocket server.
        """
        if self.ws:
            ws, self.ws = self.ws, None
            await ws.close()
            logger.debug(f"Disconnected from {self.url}")
