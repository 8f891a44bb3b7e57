"""
Verified shutdown of the connection pool.

``ConnectionPool.close()`` returns before its connections are actually closed,
and a failing close only shows up later as a ``pool.close_failed`` event.
The shutdown loop therefore subscribes to that event, closes, waits a settle
interval long enough for any failure to arrive, and repeats the whole close
until one attempt goes by without a failure.
"""

import asyncio
from typing import Optional

from dbkeeper.lib.core.pool import ConnectionPool
from dbkeeper.lib.event_bus import EventBus, POOL_CLOSE_FAILED
from dbkeeper.lib.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_SETTLE_SECONDS = 2.0


class CloseAttemptState:
    """Failure flag of the close attempt in progress."""

    def __init__(self):
        self.failed = False
        self.last_error: Optional[BaseException] = None

    def reset(self) -> None:
        self.failed = False
        self.last_error = None

    def mark_failed(self, error: Optional[BaseException] = None, **kwargs) -> None:
        self.failed = True
        self.last_error = error


class ShutdownCoordinator:
    """
    Closes a pool and only returns once a close attempt produced no failure.

    Args:
        pool: The pool to close
        events: Event bus the pool reports close failures on
        settle_seconds: How long to wait for late failures after each attempt
    """

    def __init__(self, pool: ConnectionPool, events: EventBus, settle_seconds: float = DEFAULT_SETTLE_SECONDS):
        self.pool = pool
        self.events = events
        self.settle_seconds = settle_seconds
        self.attempts = 0

    async def close(self) -> int:
        """
        Close the pool, retrying until a clean close is observed.

        Returns:
            Number of close attempts made
        """
        state = CloseAttemptState()
        self.attempts = 0

        logger.info("Closing the database")

        with self.events.subscription(POOL_CLOSE_FAILED, state.mark_failed):
            while True:
                state.reset()
                self.attempts += 1
                await self.pool.close()
                await asyncio.sleep(self.settle_seconds)

                if not state.failed:
                    break
                logger.info(f"Waiting to close the database (attempt {self.attempts} failed: {state.last_error})")

        logger.info("Database closed")
        return self.attempts
