"""Unit tests for the event bus module."""

import unittest
from unittest.mock import AsyncMock, MagicMock

from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED


class TestEventBus(unittest.IsolatedAsyncioTestCase):
    """Test cases for EventBus class."""

    def setUp(self):
        self.bus = EventBus()

    def test_on_registers_handler(self):
        handler = MagicMock()
        self.bus.on("test.event", handler)

        self.assertEqual(self.bus.handler_count("test.event"), 1)

    def test_off_unregisters_handler(self):
        handler = MagicMock()
        self.bus.on("test.event", handler)
        self.bus.off("test.event", handler)

        self.assertEqual(self.bus.handler_count("test.event"), 0)

    def test_off_nonexistent_handler(self):
        """off() of an unknown handler logs a warning instead of raising."""
        self.bus.on("test.event", MagicMock())
        with self.assertLogs("dbkeeper.lib.event_bus", level="WARNING"):
            self.bus.off("test.event", MagicMock())

    async def test_emit_calls_sync_and_async_handlers(self):
        sync_handler = MagicMock()
        async_handler = AsyncMock()
        self.bus.on(POOL_CLOSE_FAILED, sync_handler)
        self.bus.on(POOL_CLOSE_FAILED, async_handler)

        await self.bus.emit(POOL_CLOSE_FAILED, error="boom")

        sync_handler.assert_called_once_with(error="boom")
        async_handler.assert_awaited_once_with(error="boom")

    async def test_emit_no_handlers(self):
        await self.bus.emit("nonexistent.event", arg="value")

    async def test_emit_handler_exception_isolation(self):
        """An exception in one handler does not stop the others or reach the emitter."""
        failing = MagicMock(side_effect=ValueError("handler failed"))
        failing.__name__ = "failing"
        after = AsyncMock()
        self.bus.on("test.event", failing)
        self.bus.on("test.event", after)

        with self.assertLogs("dbkeeper.lib.event_bus", level="ERROR"):
            await self.bus.emit("test.event")

        after.assert_awaited_once()

    async def test_subscription_scope(self):
        handler = MagicMock()
        with self.bus.subscription("test.event", handler):
            await self.bus.emit("test.event", n=1)
        await self.bus.emit("test.event", n=2)

        handler.assert_called_once_with(n=1)
        self.assertEqual(self.bus.handler_count("test.event"), 0)

    async def test_subscription_removed_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.bus.subscription("test.event", MagicMock()):
                raise RuntimeError("inside")
        self.assertEqual(self.bus.handler_count("test.event"), 0)

    def test_buses_are_independent(self):
        other = EventBus()
        self.bus.on("test.event", MagicMock())
        self.assertEqual(other.handler_count("test.event"), 0)


if __name__ == '__main__':
    unittest.main()
