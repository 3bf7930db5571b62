"""Logging configuration for the dynapi server.

This module provides:
- a root logging setup driven by the configured log level
- a filter that keeps framework-level exception logs from duplicating ours
- a formatter that drops stack traces for client errors
"""

import logging
import traceback
from typing import Optional

from starlette.exceptions import HTTPException

from dynapi.exceptions import APIError

ERROR_HANDLER_LOGGER = "dynapi.api.error_handler"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def parse_level(level: Optional[str]) -> int:
    """Map a level name to a ``logging`` level, defaulting to INFO."""
    return LEVELS.get((level or "info").lower(), logging.INFO)


def _is_client_error(exc_value: Optional[BaseException]) -> bool:
    if isinstance(exc_value, (HTTPException, APIError)):
        return exc_value.status_code < 500
    return False


class CentralizedErrorFilter(logging.Filter):
    """Suppress uvicorn/starlette error records; ``APIErrorHandler`` logs them once."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == ERROR_HANDLER_LOGGER:
            return True
        if record.name in ("uvicorn.error", "starlette.error") and record.levelno >= logging.ERROR:
            return False
        if record.levelno >= logging.ERROR:
            message = record.getMessage()
            if "Exception in ASGI application" in message:
                return False
        return True


class KnownErrorFormatter(logging.Formatter):
    """Formatter that omits stack traces for client errors."""

    def formatException(self, ei):  # noqa: N802
        if not ei:
            return ""
        exc_type, exc_value, exc_tb = ei
        if _is_client_error(exc_value):
            return ""
        result = super().formatException(ei)
        if result:
            return result
        return "".join(traceback.format_exception(exc_type, exc_value, exc_tb))


class LoggingConfigurator:
    """Configure root logging and the framework loggers."""

    @staticmethod
    def configure(level: Optional[str] = "info") -> None:
        """Set up root logging at ``level`` and install the error filters.

        Safe to call more than once; handlers and filters are not duplicated.
        """
        root = logging.getLogger()
        root.setLevel(parse_level(level))
        if not root.handlers:
            root.addHandler(logging.StreamHandler())

        formatter = KnownErrorFormatter(LOG_FORMAT)
        for handler in root.handlers:
            handler.setFormatter(formatter)
        LoggingConfigurator.configure_exception_logging()

    @staticmethod
    def configure_exception_logging() -> None:
        """Attach ``CentralizedErrorFilter`` to uvicorn, starlette and root handlers."""
        error_filter = CentralizedErrorFilter()
        for name in ("uvicorn.error", "starlette.error"):
            framework_logger = logging.getLogger(name)
            if not any(isinstance(f, CentralizedErrorFilter) for f in framework_logger.filters):
                framework_logger.addFilter(error_filter)
            for handler in framework_logger.handlers:
                handler.setFormatter(KnownErrorFormatter(LOG_FORMAT))

        for handler in logging.getLogger().handlers:
            if not any(isinstance(f, CentralizedErrorFilter) for f in handler.filters):
                handler.addFilter(error_filter)


__all__ = [
    "CentralizedErrorFilter",
    "KnownErrorFormatter",
    "LoggingConfigurator",
    "parse_level",
]
