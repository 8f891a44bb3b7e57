"""
Migration manager for the managed database.

Handles migration ordering, execution and version tracking.
"""

import sqlite3
from typing import List, Optional
import logging

from dbkeeper.lib.core.errors import MigrationError
from .base import Migration


class MigrationManager:
    """
    Runs registered migrations against a connection.

    Features:
    - Migrations applied in strictly increasing version order
    - Version tracking in the migration_history table
    - One transaction per migration, rolled back on failure
    - Failed attempts recorded with success = 0, never as applied
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._migrations: List[Migration] = []

    @property
    def migrations(self) -> List[Migration]:
        return list(self._migrations)

    @property
    def latest_version(self) -> int:
        return self._migrations[-1].version if self._migrations else 0

    def register_migration(self, migration: Migration) -> None:
        """
        Register a migration.

        Raises:
            ValueError: If the version is not positive or already registered
        """
        if migration.version <= 0:
            raise ValueError(f"Migration version must be positive: {migration!r}")
        if any(m.version == migration.version for m in self._migrations):
            raise ValueError(f"Duplicate migration version {migration.version}")
        self._migrations.append(migration)
        self._migrations.sort(key=lambda m: m.version)

    def register_migrations(self, migrations: List[Migration]) -> None:
        for migration in migrations:
            self.register_migration(migration)

    def _ensure_migration_table(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS migration_history (
                version INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                success BOOLEAN DEFAULT 1
            )
        """)
        conn.commit()

    def get_current_version(self, conn: sqlite3.Connection) -> int:
        """
        Get the current schema version.

        Returns:
            Highest successfully applied version (0 if none)
        """
        self._ensure_migration_table(conn)

        cursor = conn.execute("""
            SELECT MAX(version) as max_version
            FROM migration_history
            WHERE success = 1
        """)
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _record_migration(
        self,
        conn: sqlite3.Connection,
        migration: Migration,
        success: bool = True
    ) -> None:
        conn.execute("""
            INSERT OR REPLACE INTO migration_history (version, description, applied_at, success)
            VALUES (?, ?, CURRENT_TIMESTAMP, ?)
        """, (migration.version, migration.description, success))

    def get_pending_migrations(self, conn: sqlite3.Connection) -> List[Migration]:
        current_version = self.get_current_version(conn)
        return [m for m in self._migrations if m.version > current_version]

    def migrate_to_latest(self, conn: sqlite3.Connection, target_version: Optional[int] = None) -> int:
        """
        Apply all pending migrations.

        Migrations whose check_can_apply() returns False are recorded as
        applied without running upgrade(): their change is already present.

        Args:
            conn: Connection in autocommit mode
            target_version: Stop after this version (None = latest)

        Returns:
            Number of migrations whose upgrade() ran

        Raises:
            MigrationError: If a migration fails. Earlier migrations stay applied.
        """
        current_version = self.get_current_version(conn)
        self.logger.info(f"Current database version: {current_version}")

        pending = [m for m in self._migrations if m.version > current_version]
        if target_version is not None:
            pending = [m for m in pending if m.version <= target_version]

        if not pending:
            self.logger.info("No pending migrations")
            return 0

        self.logger.info(f"Found {len(pending)} pending migrations")

        applied_count = 0
        for migration in pending:
            self.logger.info(f"Applying migration {migration.version}: {migration.description}")

            conn.execute("BEGIN")
            try:
                if migration.check_can_apply(conn):
                    migration.upgrade(conn)
                    applied_count += 1
                else:
                    self.logger.info(f"Migration {migration.version} already present, recording as applied")
                self._record_migration(conn, migration, success=True)
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Migration {migration.version} failed: {e}")
                self._record_migration(conn, migration, success=False)
                conn.commit()
                raise MigrationError(migration.version, migration.description) from e

            self.logger.info(f"Successfully applied migration {migration.version}")

        self.logger.info(f"Successfully applied {applied_count} migrations")
        return applied_count

    def get_migration_history(self, conn: sqlite3.Connection) -> List[dict]:
        """
        Get the recorded migration attempts.

        Returns:
            List of records with version, description, applied_at, success
        """
        self._ensure_migration_table(conn)

        cursor = conn.execute("""
            SELECT version, description, applied_at, success
            FROM migration_history
            ORDER BY version
        """)
        return [
            {"version": row[0], "description": row[1], "applied_at": row[2], "success": bool(row[3])}
            for row in cursor.fetchall()
        ]

    def rollback_to(self, conn: sqlite3.Connection, target_version: int) -> int:
        """
        Revert applied migrations down to ``target_version``.

        Returns:
            Number of migrations rolled back

        Raises:
            MigrationError: If a downgrade fails
        """
        current_version = self.get_current_version(conn)

        if target_version >= current_version:
            self.logger.info("Target version is current or higher, nothing to rollback")
            return 0

        to_rollback = [m for m in self._migrations if target_version < m.version <= current_version]
        to_rollback.sort(key=lambda m: m.version, reverse=True)

        rolled_back = 0
        for migration in to_rollback:
            self.logger.info(f"Rolling back migration {migration.version}: {migration.description}")

            conn.execute("BEGIN")
            try:
                migration.downgrade(conn)
                conn.execute("DELETE FROM migration_history WHERE version = ?", (migration.version,))
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Rollback of migration {migration.version} failed: {e}")
                raise MigrationError(migration.version, migration.description) from e

            rolled_back += 1

        self.logger.info(f"Successfully rolled back {rolled_back} migrations")
        return rolled_back
