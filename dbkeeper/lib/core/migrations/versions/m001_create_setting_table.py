"""
Migration 001: Create the setting table

Key/value store for process-wide settings. Values are stored JSON-encoded
together with an optional type tag used to group related keys.
"""

import sqlite3
from dbkeeper.lib.core.migrations.base import Migration


class Migration001CreateSettingTable(Migration):

    @property
    def version(self) -> int:
        return 1

    @property
    def description(self) -> str:
        return "Create setting key/value table"

    def check_can_apply(self, conn: sqlite3.Connection) -> bool:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='setting'"
        )
        if cursor.fetchone() is not None:
            self.logger.info("Migration already applied (setting table exists)")
            return False
        return True

    def upgrade(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE setting (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                key VARCHAR(200) NOT NULL UNIQUE,
                value TEXT,
                type VARCHAR(20)
            )
        """)

    def downgrade(self, conn: sqlite3.Connection) -> None:
        conn.execute("DROP TABLE IF EXISTS setting")
