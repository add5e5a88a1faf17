"""
Logging setup for the VAM API.

All modules obtain their logger through ``get_logger(__name__)``. Records
from the standard ``logging`` module (uvicorn, httpx) are forwarded into
loguru so every line shares one format and one set of sinks.
"""

import logging
import sys
from typing import Optional

from loguru import logger as _logger

_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | {message}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} | {message}"

_logger.configure(extra={"name": "vam"})


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        _logger.bind(name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level for all sinks.
        log_file: Optional path of a rotating log file.
    """
    level = level.upper()
    _logger.remove()
    _logger.add(sys.stderr, level=level, format=_FORMAT)

    if log_file:
        _logger.add(
            log_file,
            level=level,
            format=_FILE_FORMAT,
            rotation="10 MB",
            retention=2,
            encoding="utf-8",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False

    # httpx logs every request URL at INFO, which includes query strings
    logging.getLogger("httpx").setLevel(max(logging.WARNING, _logger.level(level).no))


def get_logger(name: str):
    """Return a loguru logger bound to a module name."""
    return _logger.bind(name=name)


def short_sid(sid: Optional[str]) -> str:
    """Render a session id for log lines without exposing the full token."""
    if not sid:
        return "(none)"
    return f"{sid[:8]}..."
