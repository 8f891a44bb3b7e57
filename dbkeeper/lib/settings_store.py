"""
Key/value settings stored in the managed database.

Values are JSON-encoded so that numbers, booleans, lists and dicts keep their
type. The optional type tag groups related keys (e.g. "general", "backup").
"""

import json
from typing import Any, Optional

from dbkeeper.lib.core.database import DatabaseManager
from dbkeeper.lib.logging_utils import get_logger

logger = get_logger(__name__)


def get_setting(db: DatabaseManager, key: str, default: Any = None) -> Any:
    """
    Read a setting.

    Args:
        db: Connected database manager
        key: Setting key
        default: Returned when the key does not exist

    Returns:
        The decoded value, or ``default``
    """
    row = db.execute_query("SELECT value FROM setting WHERE key = ?", (key,), fetch_one=True)
    if row is None or row["value"] is None:
        return default
    try:
        return json.loads(row["value"])
    except json.JSONDecodeError:
        # Values written by other tools may be plain strings
        return row["value"]


def set_setting(db: DatabaseManager, key: str, value: Any, type_: Optional[str] = None) -> None:
    """
    Create or update a setting.

    Args:
        db: Connected database manager
        key: Setting key
        value: JSON-serialisable value
        type_: Optional group tag
    """
    db.execute_update(
        """
        INSERT INTO setting (key, value, type) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, type = excluded.type
        """,
        (key, json.dumps(value), type_),
    )
    logger.debug(f"Setting '{key}' updated")


def get_settings_by_type(db: DatabaseManager, type_: str) -> dict:
    """Return all settings with the given type tag as a key -> value dict."""
    rows = db.execute_query("SELECT key, value FROM setting WHERE type = ?", (type_,))
    result = {}
    for row in rows:
        try:
            result[row["key"]] = json.loads(row["value"]) if row["value"] is not None else None
        except json.JSONDecodeError:
            result[row["key"]] = row["value"]
    return result
