"""
Unit tests for the modelforge logger hierarchy.
"""

import logging

import pytest

from modelforge.gen_logging import _GenFormatter, configure_gen_logging, get_logger, log_level


def _record(level, message):
    return logging.LogRecord("modelforge.cache", level, __file__, 1, message, None, None)


class TestGetLogger:
    """Logger names."""

    def test_module_name_is_shortened(self):
        assert get_logger("modelforge.backends.grace").name == "modelforge.grace"

    def test_root(self):
        assert get_logger().name == "modelforge"
        assert get_logger("modelforge").name == "modelforge"


class TestConfigure:
    """Levels chosen on the command line."""

    @pytest.mark.parametrize(
        "verbose, quiet, expected",
        [
            (False, False, logging.INFO),
            (True, False, logging.DEBUG),
            (False, True, logging.WARNING),
            (True, True, logging.DEBUG),
        ],
    )
    def test_log_level(self, verbose, quiet, expected):
        assert log_level(verbose, quiet) == expected

    def test_single_handler_relevelled(self):
        logger = configure_gen_logging()
        logger = configure_gen_logging(quiet=True)
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING
        assert logger.level == logging.WARNING
        assert logger.propagate is False


class TestGenFormatter:
    """Message formatting."""

    def test_progress_lines_are_bare(self):
        assert _GenFormatter().format(_record(logging.INFO, "[REBUILD] shop.json")) == "[REBUILD] shop.json"

    def test_warnings_are_prefixed(self):
        text = _GenFormatter().format(_record(logging.WARNING, "[SKIP] gamma"))
        assert text == "warning: [SKIP] gamma"

    def test_errors_are_prefixed(self):
        text = _GenFormatter().format(_record(logging.ERROR, "[ERROR] Module 'alpha'"))
        assert text == "error: [ERROR] Module 'alpha'"
