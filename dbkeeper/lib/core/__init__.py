"""
Core database lifecycle components.

Components:
- DatabaseManager: single owner of the store for the whole process
- Filesystem guard: data/upload directory resolution and creation
- ConnectionPool: pooled connections with asynchronous close
- Migration system for schema evolution
- BackupCoordinator: file-level snapshot and restore around risky upgrades
- ShutdownCoordinator: close loop that waits for a confirmed close
- Maintenance: size inspection and VACUUM
"""

from dbkeeper.lib.core.database import DatabaseManager
from dbkeeper.lib.core.engine import EngineKind

__all__ = [
    "DatabaseManager",
    "EngineKind",
]
