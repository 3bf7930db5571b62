"""HTTP layer: the FastAPI server, admin routes, error handling and logging."""

from .error_handler import APIErrorHandler
from .logging_config import LoggingConfigurator
from .server import Server, create_app

__all__ = ["APIErrorHandler", "LoggingConfigurator", "Server", "create_app"]
