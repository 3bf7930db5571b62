"""dynapi: serve HTTP endpoints declared at runtime.

Endpoints (path, method, parameters, protection and conditional responses)
are stored as JSON documents and served without a restart. Declarations are
managed through the admin API under ``/api/admin``.
"""

__version__ = "1.0.0"

from .api.server import Server, create_app
from .config import ServerConfig
from .models import Asset, Endpoint, ParameterSpec, ResponseRule

__all__ = [
    "Asset",
    "Endpoint",
    "ParameterSpec",
    "ResponseRule",
    "Server",
    "ServerConfig",
    "create_app",
    "__version__",
]
