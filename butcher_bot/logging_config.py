"""
Logging configuration for Butcher Bot.

Every log line is tagged with the id of the HTTP request that produced it,
so a chat turn can be followed from the route through the interpreter, the
reconciliation engine and the order commit. RequestIDMiddleware sets the id;
lines logged outside a request show "-".

Usage:
    from butcher_bot.logging_config import setup_logging
    setup_logging()  # Call once at application startup

Environment variables (see config.py):
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
    LOG_FORMAT: logging format string; may use %(request_id)s
"""
import logging
import sys
from contextvars import ContextVar
from typing import Optional

from .config import LOG_DATE_FORMAT, LOG_FORMAT, get_log_level

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Loggers that report every upstream HTTP call, SQL statement or access line
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "instructor",
    "multipart",
    "sqlalchemy.engine",
    "uvicorn.access",
)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIDFilter(logging.Filter):
    """Adds ``request_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def _resolve_level(level: Optional[str]) -> str:
    level = (level or get_log_level()).upper()
    return level if level in VALID_LEVELS else "INFO"


def setup_logging(level: str = None) -> None:
    """
    Configure logging for the service.

    Args:
        level: Log level name. Defaults to LOG_LEVEL; unknown names mean INFO.
    """
    level = _resolve_level(level)
    numeric_level = getattr(logging, level)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
    )

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIDFilter) for f in handler.filters):
            handler.addFilter(RequestIDFilter())

    logging.getLogger("butcher_bot").setLevel(numeric_level)

    noisy_level = numeric_level if level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logging.getLogger(__name__).debug("Logging configured at %s level", level)
