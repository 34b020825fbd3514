"""Logging configuration for the proxy."""

import logging
import sys
from typing import Mapping

LOGGER_NAME = "claude-proxy"

# Header names whose values never reach the logs
SENSITIVE_HEADERS = {"authorization", "x-api-key", "x-goog-api-key", "proxy-authorization"}


def setup_logging(debug: bool = False) -> logging.Logger:
    """Set up logging with proper handlers and formatters.

    Args:
        debug: Lower the level to DEBUG (the ``DEBUG=true`` switch).
    """
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Propagate to the root logger so pytest's caplog sees records too
    logger.propagate = True

    return logger


def safe_headers_for_log(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of headers with credential values masked."""
    masked: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = "***"
        else:
            masked[key] = value
    return masked


# Global logger instance
logger = setup_logging()
