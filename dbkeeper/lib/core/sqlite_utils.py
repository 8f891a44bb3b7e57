"""
SQLite connection tuning utilities.

Connection-scoped PRAGMAs are applied to every pooled connection as it is
opened. The resulting values are read back and logged, never validated,
because SQLite silently clamps or ignores values it does not accept
(auto_vacuum, for instance, only changes on an empty database or after VACUUM).
"""

import sqlite3
from typing import Any
import logging

from dbkeeper.lib.logging_utils import SQL_LOGGER_NAME

logger = logging.getLogger(__name__)
sql_logger = logging.getLogger(SQL_LOGGER_NAME)


def apply_tuning(conn: sqlite3.Connection, test_mode: bool = False, cache_size_kb: int = 12000) -> None:
    """
    Apply the lifecycle PRAGMAs to a connection.

    Args:
        conn: SQLite connection
        test_mode: Use an in-memory journal instead of WAL
        cache_size_kb: Page cache budget in kilobytes
    """
    conn.execute("PRAGMA foreign_keys = ON")
    if test_mode:
        conn.execute("PRAGMA journal_mode = MEMORY")
    else:
        conn.execute("PRAGMA journal_mode = WAL")
    # Negative value means kilobytes, not pages
    conn.execute(f"PRAGMA cache_size = -{int(cache_size_kb)}")
    conn.execute("PRAGMA auto_vacuum = FULL")


def enable_statement_trace(conn: sqlite3.Connection) -> None:
    """Log every statement executed on ``conn`` on the SQL trace logger."""
    conn.set_trace_callback(lambda statement: sql_logger.debug(statement))


def read_pragma(conn: sqlite3.Connection, name: str) -> Any:
    """Return the current value of a PRAGMA, or None if it yields no row."""
    row = conn.execute(f"PRAGMA {name}").fetchone()
    return row[0] if row else None


def sqlite_version(conn: sqlite3.Connection) -> str:
    return conn.execute("SELECT sqlite_version()").fetchone()[0]


def log_configuration(conn: sqlite3.Connection) -> dict:
    """
    Read back the effective tuning values and log them.

    Returns:
        Dict with journal_mode, cache_size, auto_vacuum, foreign_keys and version
    """
    info = {
        "journal_mode": read_pragma(conn, "journal_mode"),
        "cache_size": read_pragma(conn, "cache_size"),
        "auto_vacuum": read_pragma(conn, "auto_vacuum"),
        "foreign_keys": read_pragma(conn, "foreign_keys"),
        "version": sqlite_version(conn),
    }
    logger.info(
        f"SQLite config: journal_mode={info['journal_mode']}, cache_size={info['cache_size']}, "
        f"auto_vacuum={info['auto_vacuum']}, foreign_keys={info['foreign_keys']}"
    )
    logger.info(f"SQLite Version: {info['version']}")
    return info
