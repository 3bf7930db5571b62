"""Configuration model for the dynapi Server.

This module provides the configuration model for server setup, including
the data directory, asset storage, logging and admin session settings.
Values come from keyword arguments or from ``DYNAPI_*`` environment
variables via ``ServerConfig.from_env``.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ServerConfig(BaseModel):
    """Configuration model for the dynapi Server.

    Attributes:
        title: API title
        version: API version
        debug: Enable debug mode
        host: Server host address
        port: Server port number
        workers: Number of uvicorn worker processes
        log_level: Logging level
        data_dir: Directory holding the JSON document store
        assets_dir: Directory holding uploaded assets (defaults under data_dir)
        body_limit: Maximum accepted request body size in bytes
        seed_defaults: Seed example endpoints when the registry is empty
        session_ttl_hours: Lifetime of an admin session token
        cookie_secure: Mark the admin session cookie as secure
    """

    # API Configuration
    title: str = "dynapi"
    version: str = "1.0.0"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 4242
    workers: int = Field(default=1, ge=1, le=16)

    # Logging Configuration
    log_level: str = "info"

    # Storage Configuration
    data_dir: str = "./data"
    assets_dir: Optional[str] = None
    body_limit: int = 50 * 1024 * 1024  # 50MB for binary uploads

    # Registry Configuration
    seed_defaults: bool = True

    # Admin Session Configuration
    session_ttl_hours: int = 24
    cookie_secure: bool = False

    @property
    def assets_path(self) -> Path:
        """Resolved asset root directory."""
        if self.assets_dir:
            return Path(self.assets_dir)
        return Path(self.data_dir) / "assets"

    @classmethod
    def from_env(cls, **overrides: Any) -> "ServerConfig":
        """Build a configuration from environment variables.

        Args:
            **overrides: Explicit values taking priority over the environment

        Returns:
            ServerConfig instance

        Environment Variables:
            DYNAPI_HOST / HOST: Bind address (default: "0.0.0.0")
            DYNAPI_PORT / PORT: Bind port (default: 4242)
            DYNAPI_WORKERS: Worker process count (default: 1)
            DYNAPI_LOG_LEVEL: Log level (default: "info")
            DYNAPI_DATA_DIR: Document store directory (default: "./data")
            DYNAPI_ASSETS_DIR: Asset directory (default: "<data_dir>/assets")
            DYNAPI_DEBUG: Enable debug mode (default: "false")
            DYNAPI_SEED_DEFAULTS: Seed example endpoints (default: "true")
            DYNAPI_COOKIE_SECURE: Secure admin cookie (default: "false")
        """
        values: Dict[str, Any] = {
            "host": os.getenv("DYNAPI_HOST") or os.getenv("HOST", "0.0.0.0"),
            "port": int(os.getenv("DYNAPI_PORT") or os.getenv("PORT", "4242")),
            "workers": int(os.getenv("DYNAPI_WORKERS", "1")),
            "log_level": os.getenv("DYNAPI_LOG_LEVEL", "info"),
            "data_dir": os.getenv("DYNAPI_DATA_DIR", "./data"),
            "assets_dir": os.getenv("DYNAPI_ASSETS_DIR") or None,
            "debug": _env_bool("DYNAPI_DEBUG", "false"),
            "seed_defaults": _env_bool("DYNAPI_SEED_DEFAULTS", "true"),
            "cookie_secure": _env_bool("DYNAPI_COOKIE_SECURE", "false"),
        }
        values.update(overrides)
        return cls(**values)
