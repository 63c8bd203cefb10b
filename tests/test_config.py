import logging
import unittest
from datetime import datetime
from unittest import mock

from flask import Flask

from config import Config, ProductionConfig
from extensions import db
from models import SystemSettings
from tests.base import AppTestCase


class SemesterLabelTests(unittest.TestCase):
    def test_auto_calculated_label(self):
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 1, 15)), 'Spring 2026')
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 5, 31)), 'Spring 2026')
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 6, 1)), 'Summer 2026')
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 7, 31)), 'Summer 2026')
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 8, 1)), 'Fall 2026')
        self.assertEqual(Config._auto_calculate_semester(datetime(2026, 12, 31)), 'Fall 2026')

    def test_production_requires_secret_key(self):
        with mock.patch.dict('os.environ', {}, clear=True):
            with self.assertRaises(ValueError):
                ProductionConfig.init_app(Flask(__name__))


class LoggingTests(AppTestCase):
    def test_every_module_logger_uses_configured_level(self):
        for name in ('grading', 'finalization', 'notifier', 'blueprints.planner.routes', 'config'):
            logger = logging.getLogger(name)
            self.assertTrue(logger.propagate)
            self.assertEqual(logger.getEffectiveLevel(), logging.WARNING)
        self.assertEqual(self.app.logger.getEffectiveLevel(), logging.WARNING)
        self.assertTrue(logging.getLogger().handlers)

    def test_module_records_reach_root(self):
        with self.assertLogs(level='WARNING') as captured:
            logging.getLogger('grading').warning('ledger mismatch')
        self.assertIn('ledger mismatch', captured.output[0])


class StoredSemesterTests(AppTestCase):
    def test_new_course_defaults_to_stored_semester(self):
        SystemSettings.set_setting('current_semester', 'Fall 2031')
        db.session.commit()

        course = self.create_course()
        self.assertEqual(course['semester'], 'Fall 2031')


if __name__ == "__main__":
    unittest.main()
