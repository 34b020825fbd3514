"""Logging module for the proxy."""

from .setup import LOGGER_NAME, logger, safe_headers_for_log, setup_logging

__all__ = [
    "LOGGER_NAME",
    "logger",
    "safe_headers_for_log",
    "setup_logging",
]
