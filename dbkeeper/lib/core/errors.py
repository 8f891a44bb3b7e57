"""
Exception types raised by the database lifecycle components.
"""

from pathlib import Path


class DatabaseLifecycleError(RuntimeError):
    """Base class for all lifecycle errors."""


class UnsupportedOperationError(DatabaseLifecycleError):
    """
    Raised when an operation is invoked against an engine that does not support it.

    Attributes:
        operation -- name of the rejected operation
        engine -- the engine kind that rejected it
    """
    def __init__(self, operation, engine):
        super().__init__(f"{operation} is only supported on SQLite (active engine: {engine.value})")
        self.operation = operation
        self.engine = engine


class BackupIntegrityError(DatabaseLifecycleError):
    """Raised when a snapshot file that should exist after a backup is missing."""
    def __init__(self, path: Path):
        super().__init__(f"Backup failed! {path}")
        self.path = path


class MigrationError(DatabaseLifecycleError):
    """Raised when a migration fails; the underlying error is chained as __cause__."""
    def __init__(self, version: int, description: str):
        super().__init__(f"Migration {version} failed: {description}")
        self.version = version
        self.description = description


class PoolClosedError(DatabaseLifecycleError):
    """Raised when a connection is requested from a closed pool."""


class DriverNotFoundError(DatabaseLifecycleError):
    """Raised when the configured engine has no registered driver."""
