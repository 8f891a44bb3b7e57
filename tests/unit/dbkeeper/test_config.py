"""
Unit tests for settings and logging setup.

@testCovers dbkeeper/config.py
@testCovers dbkeeper/lib/logging_utils.py
"""

import unittest
import logging

from dbkeeper.config import Settings
from dbkeeper.lib.logging_utils import CategoryFilter, SQL_LOGGER_NAME, setup_logging, set_sql_logging


class TestSettings(unittest.TestCase):

    def test_defaults(self):
        settings = Settings(_env_file=None, DATA_DIR="")

        self.assertIsNone(settings.data_dir_override)
        self.assertEqual(settings.DB_FILENAME, "app.db")
        self.assertEqual(settings.engine, "sqlite")
        self.assertEqual(settings.CLOSE_SETTLE_SECONDS, 2.0)
        self.assertFalse(settings.SQL_LOG)

    def test_log_categories(self):
        settings = Settings(_env_file=None, LOG_CATEGORIES="dbkeeper.lib.core, dbkeeper.sql", LOG_LEVEL="debug")

        self.assertEqual(settings.log_categories, ["dbkeeper.lib.core", "dbkeeper.sql"])
        self.assertEqual(settings.log_level, "DEBUG")

    def test_environment(self):
        import os
        from unittest.mock import patch

        with patch.dict(os.environ, {"SQL_LOG": "1", "DB_ENGINE": "Postgres"}):
            settings = Settings(_env_file=None)

        self.assertTrue(settings.SQL_LOG)
        self.assertEqual(settings.engine, "postgres")


class TestLogging(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def tearDown(self):
        self.root.handlers[:] = self.saved_handlers
        self.root.setLevel(self.saved_level)
        set_sql_logging(False)

    def test_category_filter(self):
        log_filter = CategoryFilter(["dbkeeper.lib.core"])
        allowed = logging.LogRecord("dbkeeper.lib.core.backup", logging.INFO, "", 0, "", None, None)
        blocked = logging.LogRecord("other.module", logging.INFO, "", 0, "", None, None)

        self.assertTrue(log_filter.filter(allowed))
        self.assertFalse(log_filter.filter(blocked))
        self.assertTrue(CategoryFilter([]).filter(blocked))

    def test_setup_logging_sql_toggle(self):
        setup_logging("INFO", sql_log=True)
        self.assertEqual(logging.getLogger(SQL_LOGGER_NAME).level, logging.DEBUG)
        self.assertEqual(self.root.handlers[0].level, logging.DEBUG)

        setup_logging("INFO", sql_log=False)
        self.assertEqual(logging.getLogger(SQL_LOGGER_NAME).level, logging.WARNING)
        self.assertEqual(len(self.root.handlers), 1)


if __name__ == '__main__':
    unittest.main()
