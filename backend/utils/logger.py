"""
File Update Monitor Structured Logging Module.

Provides consistent, structured logging throughout the application.
Requires Python 3.11+.
"""

import atexit
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import structlog
from structlog.types import Processor

from utils.config import get_settings


def _add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add application context to all log entries."""
    settings = get_settings()
    event_dict["app"] = settings.app_name
    event_dict["version"] = settings.app_version
    event_dict["environment"] = settings.environment
    return event_dict


# Open while LOG_FILE_PATH is configured; closed at interpreter exit
_log_file: TextIO | None = None


def close_log_file() -> None:
    """Close the log file opened by configure_logging, if any."""
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None


atexit.register(close_log_file)


def _logger_factory() -> Any:
    """Print to stdout unless a log file is configured."""
    global _log_file
    file_path = get_settings().logging.file_path
    if file_path is None:
        return structlog.PrintLoggerFactory()

    # Loggers cached on first use keep their file, so reuse it
    if _log_file is None or Path(_log_file.name) != file_path:
        close_log_file()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        _log_file = file_path.open("a", encoding="utf-8")
    return structlog.WriteLoggerFactory(file=_log_file)


def configure_logging(level: str | None = None) -> None:
    """
    Configure structured logging for the application.

    Call this once at application startup.

    Args:
        level: Overrides the configured log level when given
    """
    settings = get_settings()
    level_name = (level or settings.logging.level).upper()

    # Common processors for all output formats
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_app_context,
    ]

    if settings.logging.format == "json":
        # JSON format for production
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Console format for development
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name)
        ),
        context_class=dict,
        logger_factory=_logger_factory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name),
    )

    # watchdog logs every emitter start/stop at DEBUG
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """
    Mixin class to add logging capability to any class.

    Usage:
        class MyClass(LoggerMixin):
            def my_method(self):
                self.log.info("doing something", key="value")
    """

    @property
    def log(self) -> structlog.stdlib.BoundLogger:
        """Get logger bound to this class name."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
