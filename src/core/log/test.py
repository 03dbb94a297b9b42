"""Tests for core logging module."""

import logging
from io import StringIO

from .lib import LOG_FORMAT, get_logger, setup_logging


class TestLogging:
    """Test core logging API."""

    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == "sitewizard"

    def test_setup_logging(self) -> None:
        """Verify logging setup."""
        stream = StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)
        logger = get_logger("test_setup")
        logger.debug("test message")

        # basicConfig is a no-op when logging was already configured,
        # so only the API contract is checked here.
        assert logger.level == logging.NOTSET

    def test_setup_logging_reads_environment(self, monkeypatch) -> None:
        """Level falls back to LOG_LEVEL when not given."""
        calls = {}
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.update(kw))

        setup_logging(stream=StringIO())

        assert calls["level"] == logging.WARNING
        assert calls["format"] == LOG_FORMAT
