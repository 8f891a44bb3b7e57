"""
Database lifecycle manager.

One DatabaseManager is created per process and handed to every component that
needs the database. It owns the store location, the connection pool and the
backup record; nothing is kept in module or class level state.

Lifecycle:
    manager = DatabaseManager(settings)
    manager.init({"data-dir": "./data/"})      # create directories
    manager.connect()                          # open pool, tune, migrate
    manager.run_patch("2", patch)              # optional: backup/patch/restore
    ...
    await manager.close()                      # verified shutdown
"""

from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Mapping, Optional
import logging

from dbkeeper.config import Settings, get_settings
from dbkeeper.lib.core import maintenance, sqlite_utils
from dbkeeper.lib.core.backup import BackupCoordinator, BackupSet
from dbkeeper.lib.core.engine import EngineConfig, EngineKind, Operation, resolve_engine_config, supports
from dbkeeper.lib.core.filesystem import StoreLocation, ensure_directories, resolve_store_location
from dbkeeper.lib.core.migrations import Migration, MigrationManager
from dbkeeper.lib.core.migrations.versions import ALL_MIGRATIONS
from dbkeeper.lib.core.pool import ConnectionPool
from dbkeeper.lib.core.shutdown import ShutdownCoordinator
from dbkeeper.lib.event_bus import EventBus
from dbkeeper.lib.logging_utils import get_logger


class DatabaseManager:
    """
    Owns the database lifecycle: directories, connection pool, migrations,
    backup/restore, maintenance and shutdown.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        migrations: Optional[List[Migration]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            settings: Settings instance (default: cached application settings)
            migrations: Migration instances to run on connect (default: ALL_MIGRATIONS)
            logger: Optional logger instance
        """
        self.settings = settings or get_settings()
        self.logger = logger or get_logger(__name__)
        self.events = EventBus()
        self.migration_manager = MigrationManager(self.logger)
        if migrations is None:
            migrations = [migration_class(self.logger) for migration_class in ALL_MIGRATIONS]
        self.migration_manager.register_migrations(migrations)

        self._location: Optional[StoreLocation] = None
        self._engine: Optional[EngineConfig] = None
        self._pool: Optional[ConnectionPool] = None
        self._backups: Optional[BackupCoordinator] = None
        self.last_applied_migrations = 0

    @property
    def location(self) -> StoreLocation:
        if self._location is None:
            raise RuntimeError("DatabaseManager.init() has not been called")
        return self._location

    @property
    def engine_kind(self) -> Optional[EngineKind]:
        """Active engine, None before connect()."""
        return self._engine.kind if self._engine else None

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            raise RuntimeError("DatabaseManager.connect() has not been called")
        return self._pool

    @property
    def backup_set(self) -> Optional[BackupSet]:
        return self._backups.backup_set if self._backups else None

    @property
    def plugins_enabled(self) -> bool:
        return self.location.plugins_enabled

    def init(self, args: Optional[Mapping[str, str]] = None) -> StoreLocation:
        """
        Resolve the data directory and create it along with the upload directory.

        Args:
            args: Launch arguments; "data-dir" is used when DATA_DIR is not set

        Raises:
            OSError: If a directory cannot be created
        """
        location = resolve_store_location(self.settings, args)
        ensure_directories(location)
        self._location = location
        return location

    def connect(self, test_mode: bool = False) -> EngineKind:
        """
        Open the connection pool and bring the schema up to date.

        Args:
            test_mode: Use an in-memory journal instead of WAL

        Returns:
            The detected EngineKind

        Raises:
            sqlite3.Error: If the database cannot be opened
            MigrationError: If a migration fails
        """
        location = self.location
        engine = resolve_engine_config(location.primary_file, self.settings.engine)
        self._engine = engine
        self.logger.info(f"Connecting to {engine.driver} database at {engine.path}")

        on_connect = None
        if supports(engine.kind, Operation.TUNING):
            def on_connect(conn):
                sqlite_utils.apply_tuning(conn, test_mode=test_mode, cache_size_kb=self.settings.CACHE_SIZE_KB)
                if self.settings.SQL_LOG:
                    sqlite_utils.enable_statement_trace(conn)

        if self._pool is None or self._pool.closed:
            self._pool = ConnectionPool(
                engine.connect,
                on_connect=on_connect,
                events=self.events,
                max_idle=self.settings.POOL_MAX_IDLE,
            )

        try:
            with self._pool.connection() as conn:
                self.last_applied_migrations = self.migration_manager.migrate_to_latest(conn)
                if supports(engine.kind, Operation.TUNING):
                    sqlite_utils.log_configuration(conn)
        except Exception as e:
            self.logger.error(f"Failed to connect to the database: {e}")
            self._pool.discard_idle()
            raise

        if self._backups is None or self._backups.engine_kind != engine.kind:
            self._backups = BackupCoordinator(location, engine.kind, before_restore=self._pool.discard_idle)

        return engine.kind

    def get_raw_connection(self) -> Any:
        """
        Acquire a direct connection from the pool.

        The caller must hand it back with release_raw_connection().
        """
        return self.pool.acquire()

    def release_raw_connection(self, conn: Any) -> None:
        self.pool.release(conn)

    @contextmanager
    def get_connection(self) -> Generator[Any, None, None]:
        """
        Context manager for pooled connections.

        Usage:
            with db_manager.get_connection() as conn:
                conn.execute("SELECT * FROM setting")
        """
        with self.pool.connection() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Generator[Any, None, None]:
        """
        Context manager for database transactions.

        Commits on success, rolls back on exception.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
                conn.commit()
                self.logger.debug("Transaction committed")
            except Exception:
                conn.rollback()
                raise

    def execute_query(self, query: str, params: tuple = (), fetch_one: bool = False) -> Optional[list | dict]:
        """
        Execute a SELECT query and return results as dicts.

        Args:
            query: SQL query string
            params: Query parameters
            fetch_one: If True, return a single row (or None)
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            columns = [col[0] for col in cursor.description or ()]
            if fetch_one:
                row = cursor.fetchone()
                return dict(zip(columns, row)) if row else None
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Execute an INSERT, UPDATE or DELETE in a transaction and return the affected row count."""
        with self.transaction() as conn:
            cursor = conn.execute(query, params)
            return cursor.rowcount

    def _require_backups(self) -> Optional[BackupCoordinator]:
        if self._backups is None:
            self.logger.debug("Database not connected, backup/restore skipped")
        return self._backups

    def backup(self, version_tag: str) -> Optional[BackupSet]:
        """
        Snapshot the store before a risky upgrade. One backup per process;
        see reset_backup().

        Raises:
            BackupIntegrityError: If a snapshot is missing after copying
        """
        backups = self._require_backups()
        return backups.backup(str(version_tag)) if backups else None

    def restore(self) -> bool:
        """Roll the live files back to the recorded backup. See BackupCoordinator.restore()."""
        backups = self._require_backups()
        return backups.restore() if backups else False

    def reset_backup(self) -> None:
        if self._backups:
            self._backups.reset()

    def run_patch(self, version_tag: str, patch: Callable[[Any], None]) -> None:
        """
        Run a schema patch bracketed by backup and restore.

        The store is backed up, ``patch`` is called with a pooled connection,
        and if it raises the live files are restored before the error is
        re-raised.

        Args:
            version_tag: Version code used for the backup file names
            patch: Callable receiving a connection
        """
        self.backup(version_tag)
        try:
            with self.get_connection() as conn:
                patch(conn)
        except Exception:
            self.logger.exception(f"Patch {version_tag} failed")
            self.restore()
            raise

    def get_size(self) -> int:
        """
        Size of the primary database file in bytes.

        Raises:
            UnsupportedOperationError: On engines other than SQLite
        """
        return maintenance.get_size(self._current_kind(), self.location.primary_file)

    def shrink(self) -> None:
        """
        Run VACUUM. Long-running; do not call on a latency-sensitive path.

        Raises:
            UnsupportedOperationError: On engines other than SQLite
        """
        maintenance.shrink(self._current_kind(), self.pool)

    def _current_kind(self) -> EngineKind:
        if self._engine is None:
            raise RuntimeError("DatabaseManager.connect() has not been called")
        return self._engine.kind

    async def close(self) -> int:
        """
        Close the connection pool and wait until the close is confirmed.

        Safe to call when already closed.

        Returns:
            Number of close attempts (0 if never connected)
        """
        if self._pool is None:
            return 0
        coordinator = ShutdownCoordinator(self._pool, self.events, self.settings.CLOSE_SETTLE_SECONDS)
        return await coordinator.close()
