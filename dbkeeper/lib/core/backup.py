"""
Snapshot and rollback of the SQLite store files around risky upgrades.

A backup copies the primary file and, when present, its WAL and SHM sidecars
to ``<file>.bak<version>``. Only one backup is taken per process; later
requests are no-ops until ``reset()`` is called. A restore deletes the live
files and copies the snapshots back, so a failed schema patch leaves the
store exactly as it was before the attempt.

Both operations are silent no-ops on engines other than SQLite, since generic
upgrade flows call them unconditionally.
"""

import os
import shutil
import sys
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from dbkeeper.lib.core.engine import EngineKind, Operation, supports
from dbkeeper.lib.core.errors import BackupIntegrityError
from dbkeeper.lib.core.filesystem import StoreLocation
from dbkeeper.lib.logging_utils import get_logger

logger = get_logger(__name__)


class BackupSet(BaseModel):
    """Snapshot files produced by one backup. Sidecar paths are set only if the sidecar existed."""
    model_config = ConfigDict(frozen=True)

    version_tag: str
    primary_snapshot_path: Path
    wal_snapshot_path: Optional[Path] = None
    shm_snapshot_path: Optional[Path] = None


def snapshot_path(path: Path, version_tag: str) -> Path:
    """Return ``<path>.bak<version_tag>``."""
    return path.with_name(f"{path.name}.bak{version_tag}")


class BackupCoordinator:
    """
    Takes and restores file-level backups of the store.

    Args:
        location: Resolved store location
        engine_kind: Active engine; everything is a no-op unless it is SQLITE_FILE
        before_restore: Optional callback run before live files are deleted
            (used to drop idle pooled connections)
    """

    def __init__(
        self,
        location: StoreLocation,
        engine_kind: EngineKind,
        before_restore: Optional[Callable[[], None]] = None
    ):
        self.location = location
        self.engine_kind = engine_kind
        self._before_restore = before_restore
        self._backup_set: Optional[BackupSet] = None

    @property
    def backup_set(self) -> Optional[BackupSet]:
        return self._backup_set

    def reset(self) -> None:
        """Forget the recorded backup so the next backup() call takes a new one."""
        self._backup_set = None

    def backup(self, version_tag: str) -> Optional[BackupSet]:
        """
        Snapshot the primary file and its sidecars.

        Args:
            version_tag: Version code appended to the snapshot names

        Returns:
            The recorded BackupSet (the existing one if a backup was already taken),
            None on engines without file backups

        Raises:
            BackupIntegrityError: If a snapshot is missing after copying
            OSError: If copying fails
        """
        if not supports(self.engine_kind, Operation.BACKUP):
            return None

        if self._backup_set is not None:
            logger.debug(f"Backup already taken for version {self._backup_set.version_tag}, skipping")
            return self._backup_set

        logger.info("Backing up the database")
        primary = self.location.primary_file
        wal = self.location.wal_file
        shm = self.location.shm_file

        primary_snapshot = snapshot_path(primary, version_tag)
        shutil.copyfile(primary, primary_snapshot)

        shm_snapshot = None
        if shm.exists():
            shm_snapshot = snapshot_path(shm, version_tag)
            shutil.copyfile(shm, shm_snapshot)

        wal_snapshot = None
        if wal.exists():
            wal_snapshot = snapshot_path(wal, version_tag)
            shutil.copyfile(wal, wal_snapshot)

        # Double check that every file was actually written
        for snapshot in (primary_snapshot, shm_snapshot, wal_snapshot):
            if snapshot is not None and not snapshot.exists():
                raise BackupIntegrityError(snapshot)

        self._backup_set = BackupSet(
            version_tag=version_tag,
            primary_snapshot_path=primary_snapshot,
            wal_snapshot_path=wal_snapshot,
            shm_snapshot_path=shm_snapshot,
        )
        logger.info(f"Backup saved at: {primary_snapshot}")
        return self._backup_set

    def restore(self) -> bool:
        """
        Replace the live store files with the recorded snapshots.

        Terminates the process with exit code 1 when there is nothing to
        restore from, or when the live files cannot be deleted.

        Returns:
            True if the snapshots were copied back, False if there was nothing to do
        """
        if not supports(self.engine_kind, Operation.RESTORE):
            return False

        backup_set = self._backup_set
        if backup_set is None:
            logger.info("Nothing to restore")
            return False

        logger.error("Patching the database failed!!! Restoring the backup")

        primary = self.location.primary_file
        wal = self.location.wal_file
        shm = self.location.shm_file

        # Make sure there is something to restore before deleting the live files
        if not (backup_set.primary_snapshot_path.exists() or wal.exists() or shm.exists()):
            logger.critical("Backup file not found! Leaving database in failed state.")
            sys.exit(1)

        if self._before_restore:
            self._before_restore()

        try:
            for path in (primary, shm, wal):
                if path.exists():
                    os.remove(path)
        except OSError as e:
            logger.critical(f"Restore failed; you may need to restore the backup manually: {e}")
            sys.exit(1)

        shutil.copyfile(backup_set.primary_snapshot_path, primary)
        if backup_set.shm_snapshot_path:
            shutil.copyfile(backup_set.shm_snapshot_path, shm)
        if backup_set.wal_snapshot_path:
            shutil.copyfile(backup_set.wal_snapshot_path, wal)

        logger.info(f"Database restored from {backup_set.primary_snapshot_path}")
        return True
