"""
Size inspection and space reclamation for SQLite stores.
"""

from pathlib import Path

from dbkeeper.lib.core.engine import EngineKind, Operation, supports
from dbkeeper.lib.core.errors import UnsupportedOperationError
from dbkeeper.lib.core.pool import ConnectionPool
from dbkeeper.lib.logging_utils import get_logger

logger = get_logger(__name__)


def get_size(engine_kind: EngineKind, primary_file: Path) -> int:
    """
    Return the size of the primary database file in bytes.

    Sidecar files are not included.

    Raises:
        UnsupportedOperationError: On engines other than SQLite (the disk is not touched)
    """
    if not supports(engine_kind, Operation.SIZE):
        raise UnsupportedOperationError(Operation.SIZE.value, engine_kind)

    stats = primary_file.stat()
    logger.debug(f"Database size: {stats.st_size} bytes ({primary_file})")
    return stats.st_size


def shrink(engine_kind: EngineKind, pool: ConnectionPool) -> None:
    """
    Rebuild the database file to reclaim free pages.

    VACUUM rewrites the whole file and blocks other writers while it runs;
    do not call it on a latency-sensitive path.

    Raises:
        UnsupportedOperationError: On engines other than SQLite
    """
    if not supports(engine_kind, Operation.SHRINK):
        raise UnsupportedOperationError(Operation.SHRINK.value, engine_kind)

    logger.info("Running VACUUM")
    with pool.connection() as conn:
        conn.execute("VACUUM")
    logger.info("VACUUM finished")
