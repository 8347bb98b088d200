"""Loguru setup shared by the whole backend.

Application modules import ``logger`` from here. :func:`setup_logging`
installs the stdout sink and routes the standard library ``logging``
records emitted by uvicorn and SQLAlchemy through Loguru, so there is a
single log stream with a single format.
"""

import logging
import os
import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name} | {message}"

ROUTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "sqlalchemy.engine",
    "asyncio",
)


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to Loguru, keeping the caller location."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - routing only
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None) -> None:
    """Configure the Loguru sink and intercept stdlib loggers.

    Args:
        level: Log level name. Defaults to the ``LOG_LEVEL`` environment
            variable, then ``INFO``.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logger.remove()
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [InterceptHandler()]
        routed.propagate = False
        routed.setLevel(level)


__all__ = ["logger", "setup_logging"]
