"""
Data directory resolution and creation.

Resolves where the store lives (environment override, then launch argument,
then the default ./data/) and makes sure the data and upload directories exist
before any connection is attempted.
"""

from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from dbkeeper.config import DEFAULT_DATA_DIR, Settings
from dbkeeper.lib.logging_utils import get_logger

logger = get_logger(__name__)
plugin_logger = get_logger("dbkeeper.plugins")

UPLOAD_SUBDIR = "upload"


class StoreLocation(BaseModel):
    """Resolved on-disk layout of the store. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    data_dir: Path
    upload_dir: Path
    primary_file: Path
    plugins_enabled: bool = True

    @property
    def wal_file(self) -> Path:
        return self.primary_file.with_name(self.primary_file.name + "-wal")

    @property
    def shm_file(self) -> Path:
        return self.primary_file.with_name(self.primary_file.name + "-shm")


def _is_default_data_dir(data_dir: str) -> bool:
    return Path(data_dir) == Path(DEFAULT_DATA_DIR)


def resolve_store_location(settings: Settings, args: Optional[Mapping[str, str]] = None) -> StoreLocation:
    """
    Resolve the store location without touching the disk.

    Priority: DATA_DIR environment setting > "data-dir" argument > ./data/

    Args:
        settings: Application settings
        args: Launch arguments (e.g. {"data-dir": "/srv/app-data"})
    """
    args = args or {}
    data_dir = str(settings.data_dir_override or args.get("data-dir") or DEFAULT_DATA_DIR)

    # Plugins only work with the default data directory
    plugins_enabled = _is_default_data_dir(data_dir)
    if not plugins_enabled:
        plugin_logger.warning(
            f"Warning: In order to enable plugin feature, you need to use the default data directory: {DEFAULT_DATA_DIR}"
        )

    data_path = Path(data_dir)
    return StoreLocation(
        data_dir=data_path,
        upload_dir=data_path / UPLOAD_SUBDIR,
        primary_file=data_path / settings.DB_FILENAME,
        plugins_enabled=plugins_enabled,
    )


def ensure_directories(location: StoreLocation) -> None:
    """
    Create the data and upload directories if they are missing.

    Idempotent. Raises OSError if a directory cannot be created.
    """
    location.data_dir.mkdir(parents=True, exist_ok=True)
    location.upload_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Data Dir: {location.data_dir}")
