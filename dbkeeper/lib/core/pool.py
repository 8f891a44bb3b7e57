"""
Connection pool for the lifecycle-managed database.

Connections are created on demand through the engine's connect factory and
kept in a queue when idle. The pool remembers every connection it created so
that closing the pool can reach connections that are still checked out.

Closing is asynchronous: ``close()`` schedules one background task per
connection and returns immediately. A connection that fails to close stays
tracked and the failure is published on the event bus as
``pool.close_failed``; nothing is raised to the caller. Calling ``close()``
again retries whatever is left.
"""

import asyncio
import queue
import threading
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional, Set
import logging

from dbkeeper.lib.core.errors import PoolClosedError
from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Thread-safe pool of DB-API connections.

    Usage:
        pool = ConnectionPool(config.connect, on_connect=tune, events=bus)
        with pool.connection() as conn:
            conn.execute("SELECT 1")
        await pool.close()
    """

    def __init__(
        self,
        factory: Callable[[], Any],
        on_connect: Optional[Callable[[Any], None]] = None,
        events: Optional[EventBus] = None,
        max_idle: int = 4
    ):
        """
        Args:
            factory: Callable returning a new connection
            on_connect: Optional callback run once for every new connection
            events: Event bus receiving close failures
            max_idle: Number of idle connections kept for reuse
        """
        self._factory = factory
        self._on_connect = on_connect
        self._events = events or EventBus()
        self._idle: queue.Queue = queue.Queue(maxsize=max(1, max_idle))
        self._connections: Set[Any] = set()
        self._lock = threading.Lock()
        self._closed = False
        self._pending: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Number of connections created by the pool and not yet closed."""
        with self._lock:
            return len(self._connections)

    def acquire(self) -> Any:
        """
        Check out a connection, creating one if no idle connection is available.

        Raises:
            PoolClosedError: If the pool has been closed
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        try:
            return self._idle.get(block=False)
        except queue.Empty:
            pass

        conn = self._factory()
        try:
            if self._on_connect:
                self._on_connect(conn)
        except Exception:
            conn.close()
            raise

        with self._lock:
            self._connections.add(conn)
        logger.debug(f"Opened pooled connection ({len(self._connections)} total)")
        return conn

    def release(self, conn: Any) -> None:
        """Return a connection to the pool, closing it if the pool is full or closed."""
        if not self._closed:
            try:
                self._idle.put(conn, block=False)
                return
            except queue.Full:
                pass
        self._close_now(conn)

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        """
        Context manager that checks a connection out and back in.

        Any transaction left open by the caller is rolled back on release.
        """
        conn = self.acquire()
        try:
            yield conn
        finally:
            try:
                conn.rollback()
            except Exception:
                logger.debug("Rollback on release failed", exc_info=True)
            self.release(conn)

    def discard_idle(self) -> int:
        """
        Close all idle connections synchronously.

        Returns:
            Number of connections closed
        """
        closed = 0
        while True:
            try:
                conn = self._idle.get(block=False)
            except queue.Empty:
                break
            self._close_now(conn)
            closed += 1
        return closed

    def _close_now(self, conn: Any) -> None:
        try:
            conn.close()
        except Exception as e:
            logger.warning(f"Failed to close connection: {e}")
            return
        with self._lock:
            self._connections.discard(conn)

    async def close(self) -> None:
        """
        Close every connection the pool created.

        Returns as soon as the close tasks are scheduled. Failures surface
        later as ``pool.close_failed`` events. Returns immediately if there
        is nothing left to close.
        """
        self._closed = True

        while True:
            try:
                self._idle.get(block=False)
            except queue.Empty:
                break

        with self._lock:
            remaining = list(self._connections)

        if not remaining:
            logger.debug("Connection pool already closed")
            return

        for conn in remaining:
            task = asyncio.create_task(self._destroy(conn))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _destroy(self, conn: Any) -> None:
        try:
            await asyncio.to_thread(conn.close)
        except Exception as e:
            logger.debug(f"Background close failed: {e}")
            await self._events.emit(POOL_CLOSE_FAILED, error=e, connection=conn)
            return
        with self._lock:
            self._connections.discard(conn)
