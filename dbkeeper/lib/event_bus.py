"""Event bus used as an out-of-band signal channel between lifecycle components.

Failures that happen in background work (for example a pooled connection that
fails to close after ``ConnectionPool.close()`` has already returned) cannot be
raised to the caller. They are published here instead, and whoever cares about
them subscribes for as long as it is interested.

Example:
    ```python
    from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED

    bus = EventBus()

    def on_close_failed(error: Exception, **kwargs):
        print(f"Close failed: {error}")

    with bus.subscription(POOL_CLOSE_FAILED, on_close_failed):
        await pool.close()
        await asyncio.sleep(2)
    ```
"""

from contextlib import contextmanager
from typing import Callable, Dict, List
import inspect
import logging

logger = logging.getLogger(__name__)

# Event names
POOL_CLOSE_FAILED = "pool.close_failed"


class EventBus:
    """Lightweight event bus with error isolation between handlers.

    Handlers may be plain functions or coroutine functions. Each DatabaseManager
    owns its own bus, there is no process-wide instance.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """Register a handler for an event.

        Args:
            event_name: Name of the event to listen for (e.g., "pool.close_failed")
            handler: Callable invoked with the event payload as keyword arguments
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}'")

    def off(self, event_name: str, handler: Callable):
        """Unregister a specific event handler.

        Args:
            event_name: Name of the event
            handler: The handler function to remove
        """
        if event_name in self._handlers:
            try:
                self._handlers[event_name].remove(handler)
                logger.debug(f"Unregistered handler for event '{event_name}'")
            except ValueError:
                logger.warning(f"Handler not found for event '{event_name}'")

    @contextmanager
    def subscription(self, event_name: str, handler: Callable):
        """Keep ``handler`` registered for the duration of the ``with`` block."""
        self.on(event_name, handler)
        try:
            yield handler
        finally:
            self.off(event_name, handler)

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    async def emit(self, event_name: str, **kwargs):
        """Deliver an event to all registered handlers.

        Handlers run in order and are awaited when they return an awaitable.
        Exceptions raised by a handler are logged and do not reach the emitter
        or the remaining handlers.

        Args:
            event_name: Name of the event to emit
            **kwargs: Event payload passed to all handlers
        """
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            logger.debug(f"No handlers registered for event '{event_name}'")
            return

        logger.debug(f"Emitting event '{event_name}' to {len(handlers)} handler(s)")

        for handler in handlers:
            try:
                result = handler(**kwargs)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}",
                    exc_info=e
                )

