# tests/test_logging_config.py
import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from metagdb.utils.logging_config import log_import_result, setup_logger
from metagdb.utils.yaml_config import reset_yaml_config

from support import TEST_CONFIG


class TestLoggingConfig(unittest.TestCase):
    def setUp(self):
        reset_yaml_config()
        self.tmp = tempfile.TemporaryDirectory()
        config = Path(TEST_CONFIG).read_text(encoding="utf-8").replace("./logs/", f"{self.tmp.name}/logs/")
        self.config_path = Path(self.tmp.name) / "config.yaml"
        self.config_path.write_text(config, encoding="utf-8")
        self.root_handlers = logging.getLogger().handlers[:]

    def tearDown(self):
        root = logging.getLogger()
        for handler in root.handlers[:]:
            handler.close()
            root.removeHandler(handler)
        for handler in self.root_handlers:
            root.addHandler(handler)
        reset_yaml_config()
        self.tmp.cleanup()

    def test_setup_logger_writes_rotating_file(self):
        logger = setup_logger("taxonomy_import", str(self.config_path))
        logger.info("hello")
        logging.getLogger("metagdb.processing").warning("child message")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = Path(self.tmp.name) / "logs" / "taxonomy_import.log"
        self.assertTrue(log_file.exists())
        content = log_file.read_text(encoding="utf-8")
        self.assertIn("hello", content)
        self.assertIn("child message", content)

    def test_log_import_result(self):
        logger = MagicMock()
        log_import_result("run1", True, "ok", logger)
        logger.info.assert_called_once()
        log_import_result("run1", False, "boom", logger)
        self.assertIn("boom", logger.error.call_args[0][0])


if __name__ == '__main__':
    unittest.main()
