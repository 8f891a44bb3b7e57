"""
Versioned schema migrations for the managed database.

Migrations run on a connection handed in by the caller, each one in its own
transaction, and every attempt is recorded in the migration_history table.
Backups around risky upgrades are the job of the BackupCoordinator, not of
the migration manager.

Usage:
    from dbkeeper.lib.core.migrations import MigrationManager
    from dbkeeper.lib.core.migrations.versions import ALL_MIGRATIONS

    manager = MigrationManager(logger)
    manager.register_migrations([cls(logger) for cls in ALL_MIGRATIONS])
    manager.migrate_to_latest(conn)
"""

from .manager import MigrationManager
from .base import Migration

__all__ = ["MigrationManager", "Migration"]
