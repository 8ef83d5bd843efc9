"""Logging configuration using loguru.

Everything goes to stderr.  When a log file is configured
(``DOSSIER_LOG_FILE``) a second, uncoloured sink keeps a rotating history of
workspace repairs, migrations and failed folders across CLI runs.  Records
from stdlib loggers (httpx, anyio) are forwarded to loguru.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Request-level chatter from the profile service client.
_QUIET_LOGGERS = ("httpx", "httpcore")

LOG_ROTATION = "10 MB"
LOG_RETENTION = "30 days"


def _loguru_level(record: logging.LogRecord) -> str | int:
    try:
        return logger.level(record.levelname).name
    except ValueError:
        return record.levelno


class _ForwardToLoguru(logging.Handler):
    """Re-emit stdlib records through loguru, attributed to their caller."""

    def emit(self, record: logging.LogRecord) -> None:
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(_loguru_level(record), record.getMessage())


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Install the loguru sinks and route stdlib logging into them.

    Safe to call more than once; each call replaces the previous sinks.
    """
    level = level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level=level,
            format=_FILE_FORMAT,
            rotation=LOG_ROTATION,
            retention=LOG_RETENTION,
            encoding="utf-8",
        )

    logging.basicConfig(handlers=[_ForwardToLoguru()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging to stderr{} at {}", f" and {log_file}" if log_file else "", level)
