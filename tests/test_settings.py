import logging
import unittest
from unittest import mock

import cpm.engine
import cpm.graph
from cpm.engine import CPMScheduler
from cpm.logger import HANDLER_NAME, configure_logging
from cpm.settings import Settings, settings


class TestSettings(unittest.TestCase):
    def test_defaults_are_valid(self):
        with mock.patch.object(Settings, "LOG_LEVEL", "INFO"), mock.patch.object(Settings, "PRECISION", 9):
            self.assertEqual(Settings.validate(), [])

    def test_validate_reports_problems(self):
        with mock.patch.object(Settings, "LOG_LEVEL", "LOUD"), mock.patch.object(Settings, "PRECISION", -1):
            problems = Settings.validate()
        self.assertEqual(len(problems), 2)

    def test_scheduler_uses_configured_precision(self):
        with mock.patch.object(Settings, "PRECISION", 3):
            self.assertEqual(CPMScheduler().precision, 3)
        self.assertEqual(CPMScheduler(precision=2).precision, 2)

    def test_configured_negative_precision_rejected(self):
        with mock.patch.object(Settings, "PRECISION", -1):
            with self.assertRaises(ValueError):
                CPMScheduler()

    def test_precision_rounds_floats_only(self):
        scheduler = CPMScheduler(precision=1)
        scheduler.add_activity(1, "A", "0.04")
        scheduler.add_activity(2, "B", "0.05")
        scheduler.calculate()
        first = scheduler.results[1]
        self.assertEqual(first.earliest_finish, 0.04)
        self.assertEqual(first.latest_finish, 0.05)
        self.assertEqual(first.total_float, 0.0)
        self.assertEqual(first.free_float, 0.0)
        self.assertTrue(first.is_critical)


class TestLogger(unittest.TestCase):
    def test_configure_logging_is_idempotent(self):
        with mock.patch.object(settings, "LOG_LEVEL", "DEBUG"):
            first = configure_logging("cpm.tests")
            second = configure_logging("cpm.tests")
        self.assertIs(first, second)
        self.assertEqual(len(first.handlers), 1)
        self.assertEqual(first.handlers[0].get_name(), HANDLER_NAME)
        self.assertEqual(first.level, logging.DEBUG)

    def test_package_modules_use_configured_loggers(self):
        for module in (cpm.engine, cpm.graph):
            logger = logging.getLogger(module.__name__)
            self.assertIs(module.logger, logger)
            names = [handler.get_name() for handler in logger.handlers]
            self.assertEqual(names, [HANDLER_NAME])


if __name__ == "__main__":
    unittest.main()
