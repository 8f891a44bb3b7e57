"""
Unit tests for the connection pool.

@testCovers dbkeeper/lib/core/pool.py
"""

import unittest
import asyncio
import sqlite3
import tempfile
import shutil
from pathlib import Path
from unittest.mock import MagicMock

from dbkeeper.lib.core.errors import PoolClosedError
from dbkeeper.lib.core.pool import ConnectionPool
from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED


class FlakyConnection:
    """Connection double whose first ``failures`` close() calls raise."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.close_calls = 0
        self.closed = False

    def rollback(self):
        pass

    def close(self):
        self.close_calls += 1
        if self.close_calls <= self.failures:
            raise sqlite3.OperationalError("unable to close due to unfinalized statements")
        self.closed = True


class TestConnectionPoolSync(unittest.TestCase):
    """Test checkout behaviour against a real SQLite file."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.db_path = self.test_dir / "pool.db"
        self.on_connect = MagicMock()
        self.pool = ConnectionPool(
            lambda: sqlite3.connect(str(self.db_path), check_same_thread=False, isolation_level=None),
            on_connect=self.on_connect,
            max_idle=2,
        )

    def tearDown(self):
        self.pool.discard_idle()
        shutil.rmtree(self.test_dir)

    def test_connection_is_reused(self):
        with self.pool.connection() as first:
            pass
        with self.pool.connection() as second:
            pass

        self.assertIs(first, second)
        self.assertEqual(self.pool.size, 1)
        self.on_connect.assert_called_once_with(first)

    def test_concurrent_checkouts_get_distinct_connections(self):
        a = self.pool.acquire()
        b = self.pool.acquire()
        try:
            self.assertIsNot(a, b)
            self.assertEqual(self.on_connect.call_count, 2)
        finally:
            self.pool.release(a)
            self.pool.release(b)

    def test_release_beyond_max_idle_closes(self):
        conns = [self.pool.acquire() for _ in range(3)]
        for conn in conns:
            self.pool.release(conn)

        self.assertEqual(self.pool.size, 2)
        with self.assertRaises(sqlite3.ProgrammingError):
            conns[2].execute("SELECT 1")

    def test_uncommitted_work_rolled_back_on_release(self):
        with self.pool.connection() as conn:
            conn.execute("CREATE TABLE t (x INTEGER)")
            conn.execute("BEGIN")
            conn.execute("INSERT INTO t VALUES (1)")

        with self.pool.connection() as conn:
            self.assertEqual(conn.execute("SELECT COUNT(*) FROM t").fetchone()[0], 0)

    def test_discard_idle(self):
        with self.pool.connection():
            pass
        self.assertEqual(self.pool.discard_idle(), 1)
        self.assertEqual(self.pool.size, 0)

    def test_failing_on_connect_closes_connection(self):
        conn = FlakyConnection()
        pool = ConnectionPool(lambda: conn, on_connect=MagicMock(side_effect=sqlite3.OperationalError("bad")))

        with self.assertRaises(sqlite3.OperationalError):
            pool.acquire()
        self.assertTrue(conn.closed)
        self.assertEqual(pool.size, 0)


class TestConnectionPoolClose(unittest.IsolatedAsyncioTestCase):
    """Test asynchronous close behaviour."""

    async def asyncSetUp(self):
        self.events = EventBus()
        self.failures = []

        async def on_failed(error, connection):
            self.failures.append((error, connection))

        self.events.on(POOL_CLOSE_FAILED, on_failed)

    async def test_close_returns_before_connections_are_closed(self):
        conn = FlakyConnection()
        pool = ConnectionPool(lambda: conn, events=self.events)
        pool.release(pool.acquire())

        await pool.close()
        self.assertTrue(pool.closed)
        await asyncio.sleep(0.1)

        self.assertTrue(conn.closed)
        self.assertEqual(pool.size, 0)
        self.assertEqual(self.failures, [])

    async def test_close_closes_checked_out_connections(self):
        conn = FlakyConnection()
        pool = ConnectionPool(lambda: conn, events=self.events)
        pool.acquire()

        await pool.close()
        await asyncio.sleep(0.1)

        self.assertTrue(conn.closed)

    async def test_failed_close_is_reported_and_retried(self):
        """A failing close is published, not raised, and the next close retries it."""
        conn = FlakyConnection(failures=1)
        pool = ConnectionPool(lambda: conn, events=self.events)
        pool.release(pool.acquire())

        await pool.close()
        await asyncio.sleep(0.1)

        self.assertEqual(len(self.failures), 1)
        self.assertIs(self.failures[0][1], conn)
        self.assertEqual(pool.size, 1)

        await pool.close()
        await asyncio.sleep(0.1)

        self.assertTrue(conn.closed)
        self.assertEqual(conn.close_calls, 2)
        self.assertEqual(pool.size, 0)

    async def test_close_when_already_closed(self):
        pool = ConnectionPool(FlakyConnection, events=self.events)
        await pool.close()
        await pool.close()
        self.assertEqual(pool.size, 0)

    async def test_acquire_after_close(self):
        pool = ConnectionPool(FlakyConnection, events=self.events)
        await pool.close()
        with self.assertRaises(PoolClosedError):
            pool.acquire()

    async def test_release_after_close_closes_connection(self):
        pool = ConnectionPool(FlakyConnection, events=self.events)
        conn = pool.acquire()
        await pool.close()
        await asyncio.sleep(0.1)

        pool.release(conn)
        self.assertTrue(conn.closed)


if __name__ == '__main__':
    unittest.main()
