"""
Tests for logging_utils.py - Rotating log file setup.
"""
import logging
from logging.handlers import RotatingFileHandler

from logging_utils import LOGGER_NAME, setup_logging


def test_setup_logging_is_idempotent(temp_dir):
    logger = logging.getLogger(LOGGER_NAME)
    before = list(logger.handlers)
    try:
        _, log_path = setup_logging(str(temp_dir / "logs"))
        setup_logging(str(temp_dir / "logs"))

        handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert log_path.endswith("screen_analyzer.log")

        logging.getLogger("screen_analyzer.exporter").warning("disk full")
        handlers[0].flush()
        with open(log_path, encoding="utf-8") as f:
            assert "WARNING screen_analyzer.exporter disk full" in f.read()
    finally:
        for handler in logger.handlers[:]:
            if handler not in before:
                logger.removeHandler(handler)
                handler.close()
