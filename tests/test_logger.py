"""Tests for the shared log setup (bt.common.logger)."""

import logging
import shutil
import tempfile
import unittest
from pathlib import Path

from bt.common.logger import get_logger, enable_console


class TestGetLogger(unittest.TestCase):

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.logger = get_logger("bt-test-logger", level=logging.DEBUG, log_dir=self.tmpdir)

    def tearDown(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_single_append_only_file(self):
        self.assertEqual(list(self.tmpdir.iterdir()), [])
        self.logger.info("first")
        get_logger("bt-test-logger", level=logging.DEBUG, log_dir=self.tmpdir).info("second")
        for handler in self.logger.handlers:
            handler.flush()

        self.assertEqual([p.name for p in self.tmpdir.iterdir()], ["bt-test-logger.log"])
        lines = (self.tmpdir / "bt-test-logger.log").read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[1].endswith("second"))

    def test_enable_console_once(self):
        enable_console(self.logger)
        enable_console(self.logger)
        names = [h.get_name() for h in self.logger.handlers]
        self.assertEqual(names.count("bt-test-logger:console"), 1)
        self.assertEqual(names.count("bt-test-logger:persistent"), 1)
        self.assertEqual(self.logger.level, logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
