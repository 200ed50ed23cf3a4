"""Tests for logging configuration."""

import logging

import pytest

from voice_md.logging_utils import TRACE_LEVEL, configure_logging, get_logger


@pytest.mark.unit
class TestLoggingUtils:
    def test_trace_level_registered(self) -> None:
        logger = get_logger("voice_md.test")

        assert hasattr(logger, "trace")
        assert logging.getLevelName(TRACE_LEVEL) == "TRACE"

    @pytest.mark.parametrize(
        "verbose, trace, expected",
        [
            (False, False, logging.WARNING),
            (True, False, logging.INFO),
            (False, True, logging.DEBUG),
        ],
    )
    def test_http_client_loggers_follow_verbosity(self, verbose, trace, expected) -> None:
        configure_logging(verbose=verbose, trace=trace)

        for name in ("openai", "httpx", "httpcore"):
            assert logging.getLogger(name).level == expected
