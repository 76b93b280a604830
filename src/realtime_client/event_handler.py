import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable

from utils.ml_logging import get_logger

logger = get_logger(__name__)


class RealtimeEventHandler:
    """
    Manages registration and dispatching of event handlers.

    This is the event channel the orchestrator subscribes to; transports
    publish connection-state and handoff notifications on it.
    """

    def __init__(self) -> None:
        self.event_handlers = defaultdict(list)

    def on(self, event_name: str, handler: Callable[[Any], Any]) -> None:
        """
        Register an event handler for a specific event.

        Args:
            event_name (str): Name of the event.
            handler (Callable): Function or coroutine to handle the event.
        """
        self.event_handlers[event_name].append(handler)
        logger.debug(f"Handler registered for event: {event_name}")

    def off(self, event_name: str, handler: Callable[[Any], Any]) -> bool:
        """
        Remove a previously registered handler.

        Returns:
            bool: True if the handler was registered.
        """
        handlers = self.event_handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def dispatch(self, event_name: str, event: dict) -> None:
        """
        Dispatch an event to all registered handlers.

        Coroutine handlers are scheduled as tasks on the running loop; plain
        callables run inline, in registration order.

        Args:
            event_name (str): Name of the event.
            event (dict): Event payload.
        """
        handlers = list(self.event_handlers.get(event_name, []))
        logger.debug(f"Dispatching event: {event_name} to {len(handlers)} handler(s)")
        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    asyncio.create_task(handler(event))
                else:
                    handler(event)
            except Exception:
                logger.exception(f"Error dispatching event {event_name}")

    async def wait_for_next(self, event_name: str) -> dict:
        """
        Wait for the next occurrence of a specific event.

        Args:
            event_name (str): Name of the event to wait for.

        Returns:
            dict: Event payload.
        """
        future = asyncio.get_running_loop().create_future()

        def handler(event):
            if not future.done():
                future.set_result(event)

        self.on(event_name, handler)
        logger.debug(f"Waiting for next event: {event_name}")
        try:
            return await future
        finally:
            self.off(event_name, handler)
