"""Logging setup for Voice MD, including a TRACE level below DEBUG."""

import logging
from typing import Any

# Define custom TRACE level (lower than DEBUG)
TRACE_LEVEL = 5

# Third-party loggers that are noisy below WARNING
NOISY_LOGGERS = ("openai", "httpx", "httpcore")


def add_trace_level() -> None:
    """Add a custom TRACE logging level."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with severity 'TRACE'."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    logging.Logger.trace = trace


def get_logger(name: str) -> logging.Logger:
    """Get a logger with trace support."""
    if not hasattr(logging.Logger, "trace"):
        add_trace_level()

    return logging.getLogger(name)


def configure_logging(verbose: bool = False, trace: bool = False) -> None:
    """
    Configure root logging for the command-line host.

    Args:
        verbose: Enable DEBUG output and let HTTP client logs through
        trace: Enable TRACE output (most verbose)
    """
    add_trace_level()

    if trace:
        logging.basicConfig(
            level=TRACE_LEVEL,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        client_level = logging.DEBUG
    elif verbose:
        logging.basicConfig(
            level="DEBUG", format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        client_level = logging.INFO
    else:
        logging.basicConfig(
            level="INFO", format="%(asctime)s - %(levelname)s - %(message)s"
        )
        client_level = logging.WARNING

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(client_level)
