"""Logging for the installation pool, built on loguru.

Library modules log through ``get_logger(__name__)`` and never configure
sinks themselves. Applications opt in with ``setup_logging(settings)``,
which installs sinks from ``Settings.log_level`` and ``Settings.logging``
and routes httpx/githubkit stdlib logs into loguru.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from github_installation_pool.config import Settings, get_settings

if TYPE_CHECKING:
    from loguru import Logger, Record

CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss}</dim> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[name]}:{function}:{line} | {extra} | {message}"
)

# Stdlib loggers of the HTTP stack, quiet unless running at DEBUG
LIBRARY_LOGGERS = ("httpx", "httpcore", "githubkit")


class InterceptHandler(logging.Handler):
    """Forward stdlib log records (httpx, githubkit) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging module frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _default_name(record: Record) -> None:
    # Records from intercepted stdlib loggers carry no bound name
    record["extra"].setdefault("name", record["name"])


def setup_logging(settings: Settings | None = None) -> Logger:
    """Install loguru sinks configured from settings.

    The console sink logs at ``settings.log_level``. When
    ``settings.logging.log_file`` is set, a rotating file sink captures
    everything from DEBUG up.

    Args:
        settings: Application settings (uses get_settings() if not provided)

    Returns:
        The configured loguru logger
    """
    settings = settings or get_settings()
    level = settings.log_level
    file_config = settings.logging

    logger.remove()
    logger.configure(patcher=_default_name)
    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        backtrace=True,
        diagnose=level == "DEBUG",
    )

    if file_config.log_file:
        logger.add(
            Path(file_config.log_file),
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=file_config.rotation,
            retention=file_config.retention,
            compression="gz",
            serialize=file_config.serialize,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    library_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(name: str) -> Logger:
    """Get a logger with the module name bound as context.

    Usage:
        from github_installation_pool.logging import get_logger
        logger = get_logger(__name__)
    """
    return logger.bind(name=name)


def bind_installation(app_id: int, installation_id: int) -> Logger:
    """Get a logger carrying GitHub App installation context."""
    return logger.bind(name="installation", app_id=app_id, installation_id=installation_id)
