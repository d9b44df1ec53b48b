"""Tests for the structured logging helpers."""

import logging

from aljabar_pkg import api
from aljabar_pkg.logging_config import StructuredFormatter, get_logger, setup_logging


def make_record(**extra):
    record = logging.LogRecord("aljabar.solver", logging.INFO, __file__, 1, "found %d roots", (2,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_plain_line(self):
        line = StructuredFormatter().format(make_record())
        assert line.endswith("[INFO] aljabar.solver: found 2 roots")

    def test_error_code_appended(self):
        line = StructuredFormatter().format(make_record(error_code="TIMEOUT"))
        assert line.endswith("found 2 roots (code=TIMEOUT)")


class TestSetupLogging:
    def test_handlers_replaced(self, tmp_path):
        log_file = tmp_path / "aljabar.log"
        setup_logging("DEBUG")
        logger = setup_logging("DEBUG", str(log_file))
        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG

        api.evaluate("1/0")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text()
        assert "aljabar.api" in text
        assert "code=DIVISION_BY_ZERO" in text

        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_module_loggers_share_root(self):
        root = logging.getLogger("aljabar")
        assert get_logger("parser").name == "aljabar.parser"
        assert get_logger("parser").parent is root
