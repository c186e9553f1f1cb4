"""Logging configuration."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty third-party loggers kept at WARNING regardless of the app level.
_QUIET_LOGGERS = ("aiohttp", "redis")


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger; unknown level names fall back to INFO."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(numeric)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class ExecutionLogger(logging.LoggerAdapter):
    """Prefix every record with the id of the monitoring run that emitted it."""

    def process(self, msg, kwargs):
        return f"[run {self.extra['execution_id']}] {msg}", kwargs
