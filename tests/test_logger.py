"""
Unit tests for logging configuration.
"""

import logging

import pytest

from cloud_volumes.utils.logger import configure_logging, parse_level


class TestParseLevel:
    """Tests for log level names."""

    @pytest.mark.parametrize(
        "value,expected",
        [("info", logging.INFO), ("DEBUG", logging.DEBUG), (logging.WARNING, logging.WARNING)],
    )
    def test_levels(self, value, expected):
        assert parse_level(value) == expected

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            parse_level("chatty")


def test_configure_logging_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "volumes.log"
    try:
        configure_logging(level="debug", file_path=str(log_file))
        logging.getLogger("cloud_volumes.test").debug("attached /dev/sdf")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert "attached /dev/sdf" in log_file.read_text()


def test_configure_logging_quiets_http_loggers():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    aiohttp_logger = logging.getLogger("aiohttp")
    saved_aiohttp_level = aiohttp_logger.level
    try:
        configure_logging(level="info")
        assert aiohttp_logger.level == logging.WARNING
        assert len(root.handlers) == 1

        configure_logging(level="debug")
        assert aiohttp_logger.level == logging.NOTSET
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        aiohttp_logger.setLevel(saved_aiohttp_level)
