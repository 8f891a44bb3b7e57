"""
Logging utilities for the database lifecycle manager.

Provides category-based logging filtering and the SQL statement trace logger
"""

import logging
import sys
from typing import Optional

SQL_LOGGER_NAME = "dbkeeper.sql"


class CategoryFilter(logging.Filter):
    """Filter log records by logger name prefix"""

    def __init__(self, categories: list[str]):
        super().__init__()
        self.categories = categories

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.categories:
            return True
        return any(record.name.startswith(cat) for cat in self.categories)


def setup_logging(
    log_level: str = "INFO",
    log_categories: Optional[list[str]] = None,
    sql_log: bool = False
):
    """
    Configure logging for the process.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_categories: List of logger name prefixes to log (empty = all)
        sql_log: If True, emit every executed SQL statement on the dbkeeper.sql logger
    """
    if log_categories is None:
        log_categories = []

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    # The SQL trace logger is independent of the root level
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG if sql_log else getattr(logging, log_level.upper()))

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    if log_categories:
        handler.addFilter(CategoryFilter(log_categories))

    root_logger.addHandler(handler)
    set_sql_logging(sql_log)


def set_sql_logging(enabled: bool) -> None:
    """
    Switch the SQL statement trace on or off.

    Args:
        enabled: True to log statements at DEBUG, False to silence the trace
    """
    logging.getLogger(SQL_LOGGER_NAME).setLevel(logging.DEBUG if enabled else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module/category.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
