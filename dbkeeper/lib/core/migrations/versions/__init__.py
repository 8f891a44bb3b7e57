"""
Schema migration versions.

Each migration lives in its own module in this directory.
"""

from .m001_create_setting_table import Migration001CreateSettingTable

# List all migrations in order
ALL_MIGRATIONS = [
    Migration001CreateSettingTable,
]

__all__ = ["ALL_MIGRATIONS"]
