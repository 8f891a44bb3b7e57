"""
dbkeeper - lifecycle management for an embedded single-file SQLite store.

Covers directory setup, connection pooling and tuning, schema migrations,
crash-safe backup/restore around risky upgrades and a verified shutdown.
"""

__version__ = "1.0.0"
