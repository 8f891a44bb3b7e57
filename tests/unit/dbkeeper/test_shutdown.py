"""
Unit tests for the verified shutdown loop.

@testCovers dbkeeper/lib/core/shutdown.py
"""

import unittest
import asyncio
import sqlite3

from dbkeeper.lib.core.pool import ConnectionPool
from dbkeeper.lib.core.shutdown import CloseAttemptState, ShutdownCoordinator
from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED

SETTLE = 0.1


class LateFailingPool:
    """
    Pool double whose close() returns normally but reports a failure
    shortly afterwards for the first ``failures`` calls.
    """

    def __init__(self, events: EventBus, failures: int):
        self.events = events
        self.failures = failures
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1
        if self.close_calls <= self.failures:
            error = RuntimeError(f"close attempt {self.close_calls} failed")
            loop = asyncio.get_running_loop()
            loop.call_later(0.01, lambda: asyncio.ensure_future(
                self.events.emit(POOL_CLOSE_FAILED, error=error, connection=None)
            ))


class StickyConnection:
    def __init__(self, failures: int):
        self.failures = failures
        self.close_calls = 0

    def rollback(self):
        pass

    def close(self):
        self.close_calls += 1
        if self.close_calls <= self.failures:
            raise sqlite3.OperationalError("database is locked")


class TestCloseAttemptState(unittest.TestCase):

    def test_mark_and_reset(self):
        state = CloseAttemptState()
        self.assertFalse(state.failed)

        error = RuntimeError("boom")
        state.mark_failed(error=error, connection=object())
        self.assertTrue(state.failed)
        self.assertIs(state.last_error, error)

        state.reset()
        self.assertFalse(state.failed)
        self.assertIsNone(state.last_error)


class TestShutdownCoordinator(unittest.IsolatedAsyncioTestCase):
    """Test the close/settle/retry loop."""

    async def asyncSetUp(self):
        self.events = EventBus()

    async def test_clean_close_takes_one_attempt(self):
        pool = LateFailingPool(self.events, failures=0)
        coordinator = ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE)

        attempts = await coordinator.close()

        self.assertEqual(attempts, 1)
        self.assertEqual(pool.close_calls, 1)

    async def test_retries_until_clean(self):
        """A close failing first and succeeding second is retried exactly once."""
        pool = LateFailingPool(self.events, failures=1)
        coordinator = ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE)

        attempts = await coordinator.close()

        self.assertEqual(attempts, 2)
        self.assertEqual(pool.close_calls, 2)

    async def test_retries_multiple_failures(self):
        pool = LateFailingPool(self.events, failures=3)
        coordinator = ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE)

        with self.assertLogs("dbkeeper.lib.core.shutdown", level="INFO") as logs:
            attempts = await coordinator.close()

        self.assertEqual(attempts, 4)
        self.assertEqual(sum("Waiting to close the database" in line for line in logs.output), 3)

    async def test_listener_removed_after_close(self):
        pool = LateFailingPool(self.events, failures=1)
        await ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE).close()

        self.assertEqual(self.events.handler_count(POOL_CLOSE_FAILED), 0)

    async def test_real_pool_with_sticky_connection(self):
        """The loop drives a real pool until its connection finally closes."""
        conn = StickyConnection(failures=1)
        pool = ConnectionPool(lambda: conn, events=self.events)
        pool.release(pool.acquire())

        attempts = await ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE).close()

        self.assertEqual(attempts, 2)
        self.assertEqual(conn.close_calls, 2)
        self.assertEqual(pool.size, 0)

    async def test_close_already_closed_pool(self):
        pool = ConnectionPool(lambda: StickyConnection(failures=0), events=self.events)
        coordinator = ShutdownCoordinator(pool, self.events, settle_seconds=SETTLE)

        self.assertEqual(await coordinator.close(), 1)
        self.assertEqual(await coordinator.close(), 1)


if __name__ == '__main__':
    unittest.main()
