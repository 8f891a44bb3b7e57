"""
Base class for schema migrations.

Each migration should:
1. Have a unique, positive version number
2. Provide a description
3. Implement upgrade() and downgrade()
4. Be safe to re-run (check_can_apply() can detect an already-applied change)
"""

import sqlite3
from abc import ABC, abstractmethod
from typing import Optional
import logging


class Migration(ABC):
    """
    Base class for schema migrations.

    Subclasses must implement upgrade() and downgrade(). Both are called inside
    a transaction opened by the MigrationManager and must not commit.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    @property
    @abstractmethod
    def version(self) -> int:
        """
        Migration version number.

        Versions are applied in strictly increasing order.
        """
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    def upgrade(self, conn: sqlite3.Connection) -> None:
        """
        Apply the migration.

        Args:
            conn: Connection with an open transaction

        Raises:
            Exception: If the migration fails; the transaction is rolled back
        """
        pass

    @abstractmethod
    def downgrade(self, conn: sqlite3.Connection) -> None:
        """
        Revert the migration.

        Args:
            conn: Connection with an open transaction
        """
        pass

    def check_can_apply(self, conn: sqlite3.Connection) -> bool:
        """
        Check if the migration can be applied.

        Override this to skip a migration whose change is already present.
        """
        return True

    def __repr__(self) -> str:
        return f"<Migration {self.version}: {self.description}>"
