#!/usr/bin/env python3
"""
Database maintenance commands.

Usage:
    python bin/db-maintenance.py [--data-dir PATH] size
    python bin/db-maintenance.py [--data-dir PATH] vacuum
    python bin/db-maintenance.py [--data-dir PATH] backup VERSION
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import dbkeeper
sys.path.insert(0, str(Path(__file__).parent.parent))

from dbkeeper.config import get_settings
from dbkeeper.lib.core.errors import BackupIntegrityError, UnsupportedOperationError
from dbkeeper.lib.startup import load_environment, start_database


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def main():
    parser = argparse.ArgumentParser(description='Database maintenance')
    parser.add_argument('--data-dir', help='Data directory (default: DATA_DIR or ./data/)')
    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('size', help='Show the size of the database file')
    subparsers.add_parser('vacuum', help='Reclaim free space (slow, blocks writers)')
    backup_parser = subparsers.add_parser('backup', help='Snapshot the database files')
    backup_parser.add_argument('version', help='Version tag appended to the backup file names')

    args = parser.parse_args()
    load_environment(Path.cwd())

    launch_args = {'data-dir': args.data_dir} if args.data_dir else {}
    manager = start_database(launch_args, get_settings())

    exit_code = 0
    try:
        if args.command == 'size':
            size = manager.get_size()
            print(f"{manager.location.primary_file}: {format_size(size)}")
        elif args.command == 'vacuum':
            before = manager.get_size()
            manager.shrink()
            after = manager.get_size()
            print(f"VACUUM complete: {format_size(before)} -> {format_size(after)}")
        elif args.command == 'backup':
            backup_set = manager.backup(args.version)
            if backup_set is None:
                print("Backup is not available for this database engine")
            else:
                print(f"Backup written to {backup_set.primary_snapshot_path}")
    except UnsupportedOperationError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 2
    except BackupIntegrityError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        asyncio.run(manager.close())

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
