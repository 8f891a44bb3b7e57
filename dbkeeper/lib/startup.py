"""
Process startup helpers shared by the command-line scripts.
"""

from pathlib import Path
from typing import Mapping, Optional

from dbkeeper.config import Settings, get_settings
from dbkeeper.lib.core.database import DatabaseManager
from dbkeeper.lib.logging_utils import setup_logging


def load_environment(project_root: Path) -> bool:
    """
    Load environment variables from a .env file if it exists.

    Args:
        project_root: Directory containing the .env file

    Returns:
        True if a .env file was loaded
    """
    env_file = project_root / '.env'
    if env_file.exists():
        from dotenv import load_dotenv
        load_dotenv(env_file)
        return True
    return False


def start_database(
    args: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
    test_mode: bool = False,
    configure_logging: bool = True
) -> DatabaseManager:
    """
    Run the startup part of the lifecycle: directories, then connect and migrate.

    Any failure here is fatal for the process and propagates unchanged.

    Args:
        args: Launch arguments ("data-dir")
        settings: Settings instance (default: cached application settings)
        test_mode: Use an in-memory journal instead of WAL
        configure_logging: Set up logging from the settings first
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_categories, settings.SQL_LOG)

    manager = DatabaseManager(settings)
    manager.init(args)
    manager.connect(test_mode=test_mode)
    return manager
