"""Centralized logging configuration using loguru.

Provides:
- Configurable log levels from Settings
- CLI flag override (--verbose/--quiet)
- Standard library interception (SQLAlchemy, httpx via githubkit)
- Context binding for sync runs, repositories, pull requests and AI features
- Optional rotating file output
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_configured = False

_CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss}</dim> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - "
    "<level>{message}</level>"
)
_STDLIB_FORMAT = (
    "<dim>{time:HH:mm:ss}</dim> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - "
    "<level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{extra[name]}:{function}:{line} | "
    "{extra} | "
    "{message}"
)

# Library loggers routed through loguru, with the level they keep above DEBUG
_NOISY_LIBRARIES = ("sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


class InterceptHandler(logging.Handler):
    """Route standard library log records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        from types import FrameType

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _has_name(record: Any) -> bool:
    return "name" in record["extra"]


def _lacks_name(record: Any) -> bool:
    return "name" not in record["extra"]


def setup_logging(
    level: LogLevel = "INFO",
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> Logger:
    """Configure logging for the application.

    Args:
        level: Base log level from config
        verbose: If True, use DEBUG level (overrides level)
        quiet: If True, use WARNING level (overrides level)
        log_file: Optional path for file logging with rotation
        rotation: When to rotate log file (e.g., "10 MB", "1 day")
        retention: How long to keep rotated logs
        serialize: If True, write JSON lines to the log file

    Returns:
        Configured logger instance

    Note:
        verbose takes precedence over quiet if both are True.
    """
    global _configured

    effective_level: LogLevel
    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level

    logger.remove()

    logger.add(
        sys.stderr,
        level=effective_level,
        format=_CONSOLE_FORMAT,
        colorize=True,
        backtrace=True,
        diagnose=False,
        filter=_has_name,
    )
    # Records from intercepted stdlib loggers carry no bound name
    logger.add(
        sys.stderr,
        level=effective_level,
        format=_STDLIB_FORMAT,
        colorize=True,
        backtrace=True,
        diagnose=False,
        filter=_lacks_name,
    )

    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            format=_FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
            serialize=serialize,
            filter=_has_name,
        )

    _intercept_stdlib_logging(effective_level)

    _configured = True
    return logger


def _intercept_stdlib_logging(level: LogLevel) -> None:
    """Send SQLAlchemy, httpx and aiosqlite logs through loguru.

    SQL statements are only shown at DEBUG; everything else from those
    libraries is held at WARNING.
    """
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    debug = level in ("TRACE", "DEBUG")
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
    if debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.DEBUG)


def get_logger(name: str) -> Logger:
    """Get a logger with the given name bound as context.

    Usage:
        from pr_inbox.logging import get_logger
        logger = get_logger(__name__)
        logger.bind(repo="octo/widgets").info("Listing pull requests")

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance with name bound
    """
    return logger.bind(name=name)


def bind_run(run_id: str) -> Logger:
    """Bind sync-run context to the logger."""
    return logger.bind(name="sync", run=run_id)


def bind_repo(full_name: str) -> Logger:
    """Bind repository context to the logger.

    Args:
        full_name: Repository in owner/name form

    Returns:
        Logger with repo context bound
    """
    return logger.bind(name="sync", repo=full_name)


def bind_pr(full_name: str, number: int) -> Logger:
    """Bind pull request context to the logger.

    Args:
        full_name: Repository in owner/name form
        number: Pull request number

    Returns:
        Logger with repo and PR context bound
    """
    return logger.bind(name="sync", repo=full_name, pr=number)


def bind_feature(feature_type: str) -> Logger:
    """Bind AI feature context to the logger."""
    return logger.bind(name="ai", feature=feature_type)


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def reset_logging() -> None:
    """Reset logging state (primarily for testing)."""
    global _configured
    logger.remove()
    _configured = False
