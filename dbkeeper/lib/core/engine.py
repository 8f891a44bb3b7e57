"""
Storage engine variants and their supported operations.

The active engine decides which lifecycle operations are legal. SQLite files
support PRAGMA tuning, file-level backup/restore, size inspection and VACUUM;
any other SQL engine supports none of them. Each variant has an explicit entry
in ENGINE_OPERATIONS so adding a variant forces a decision for every operation.
"""

import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from dbkeeper.lib.core.errors import DriverNotFoundError

SQLITE_DRIVERS = {"sqlite", "sqlite3"}


class EngineKind(Enum):
    SQLITE_FILE = "sqlite3"
    OTHER_SQL = "other"


class Operation(Enum):
    TUNING = "PRAGMA tuning"
    BACKUP = "Backup"
    RESTORE = "Restore"
    SIZE = "DB size"
    SHRINK = "VACUUM"


ENGINE_OPERATIONS: Dict[EngineKind, frozenset] = {
    EngineKind.SQLITE_FILE: frozenset(Operation),
    EngineKind.OTHER_SQL: frozenset(),
}


def supports(kind: EngineKind, operation: Operation) -> bool:
    """Return True if ``operation`` is legal on engines of ``kind``."""
    return operation in ENGINE_OPERATIONS[kind]


class EngineConfig(BaseModel):
    """
    Resolved connection configuration for one database.

    The ``connect`` factory opens a new DB-API connection each time it is
    called; the pool owns every connection it returns.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: EngineKind
    driver: str
    path: Path
    connect: Callable[[], Any]


# Factories for non-file engines, keyed by driver name
_drivers: Dict[str, Callable[["EngineConfig"], Any]] = {}


def register_driver(name: str, factory: Callable[[EngineConfig], Any]) -> None:
    """
    Register a connection factory for a non-SQLite engine.

    Args:
        name: Driver name as used in the DB_ENGINE setting
        factory: Callable receiving the EngineConfig and returning a new connection
    """
    if name.lower() in SQLITE_DRIVERS:
        raise ValueError(f"Driver name '{name}' is reserved for the built-in SQLite engine")
    _drivers[name.lower()] = factory


def unregister_driver(name: str) -> None:
    _drivers.pop(name.lower(), None)


def _connect_sqlite(path: Path) -> sqlite3.Connection:
    # isolation_level=None keeps the connection in autocommit mode; explicit
    # BEGIN/COMMIT is issued by transaction() and the migration manager
    conn = sqlite3.connect(str(path), timeout=30.0, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def resolve_engine_config(path: Path, driver: str = "sqlite") -> EngineConfig:
    """
    Resolve the engine configuration for the store at ``path``.

    Args:
        path: Primary database file (the location hint for non-file engines)
        driver: Engine/driver name from the DB_ENGINE setting

    Returns:
        EngineConfig with the detected EngineKind and a connection factory

    Raises:
        DriverNotFoundError: If ``driver`` is neither SQLite nor registered
    """
    driver = driver.lower()
    path = Path(path)

    if driver in SQLITE_DRIVERS:
        return EngineConfig(
            kind=EngineKind.SQLITE_FILE,
            driver=driver,
            path=path,
            connect=lambda: _connect_sqlite(path),
        )

    factory: Optional[Callable] = _drivers.get(driver)
    if factory is None:
        raise DriverNotFoundError(f"No driver registered for engine '{driver}'")

    config = None

    def connect():
        return factory(config)

    config = EngineConfig(kind=EngineKind.OTHER_SQL, driver=driver, path=path, connect=connect)
    return config
