#!/usr/bin/env python3
"""
Run database migrations manually.

Usage:
    python bin/run-migration.py [--data-dir PATH] [--dry-run] [--rollback-to VERSION]
"""

import argparse
import asyncio
import logging
import sqlite3
import sys
from contextlib import closing
from pathlib import Path

# Add parent directory to path to import dbkeeper
sys.path.insert(0, str(Path(__file__).parent.parent))

from dbkeeper.config import get_settings
from dbkeeper.lib.core.database import DatabaseManager
from dbkeeper.lib.core.errors import MigrationError
from dbkeeper.lib.startup import load_environment

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Run database migrations."""
    parser = argparse.ArgumentParser(description='Run database migrations')
    parser.add_argument(
        '--data-dir',
        help='Data directory containing the database (default: DATA_DIR or ./data/)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show migration status without applying anything'
    )
    parser.add_argument(
        '--rollback-to',
        type=int,
        metavar='VERSION',
        help='Revert applied migrations down to VERSION'
    )

    args = parser.parse_args()
    load_environment(Path.cwd())

    manager = DatabaseManager(get_settings(), logger=logger)
    launch_args = {'data-dir': args.data_dir} if args.data_dir else {}
    location = manager.init(launch_args)
    logger.info(f"Database: {location.primary_file}")

    if args.dry_run:
        if not location.primary_file.exists():
            logger.error(f"Database not found: {location.primary_file}")
            sys.exit(1)
        with closing(sqlite3.connect(str(location.primary_file))) as conn:
            history = manager.migration_manager.get_migration_history(conn)
        applied_versions = {record['version'] for record in history if record['success']}
        logger.info("DRY RUN - registered migrations:")
        for migration in manager.migration_manager.migrations:
            status = "✓ Applied" if migration.version in applied_versions else "⧗ Pending"
            logger.info(f"  {status} - Version {migration.version}: {migration.description}")
        return

    try:
        manager.connect()
    except MigrationError as e:
        logger.error(str(e))
        sys.exit(1)

    if manager.last_applied_migrations > 0:
        logger.info(f"Successfully applied {manager.last_applied_migrations} migration(s)")
    else:
        logger.info("No migrations applied - database is up to date")

    if args.rollback_to is not None:
        with manager.get_connection() as conn:
            rolled_back = manager.migration_manager.rollback_to(conn, args.rollback_to)
        logger.info(f"Rolled back {rolled_back} migration(s)")

    with manager.get_connection() as conn:
        history = manager.migration_manager.get_migration_history(conn)
    logger.info("Migration history:")
    for record in history:
        status = "✓" if record['success'] else "✗"
        logger.info(
            f"  {status} Version {record['version']}: {record['description']}"
            f" (applied: {record['applied_at']})"
        )

    asyncio.run(manager.close())


if __name__ == '__main__':
    main()
