"""Constants for dynapi.

This module provides centralized constants for routes, HTTP methods,
declaration vocabularies, collection names, and other magic strings used
throughout the package.
"""

from typing import Dict, Tuple


class APIRoutes:
    """Fixed route path constants."""

    ADMIN_UI = "/admin"
    ADMIN_API = "/api/admin"
    HEALTH = "/health"
    OPENAPI = "/api/admin/openapi.json"


# Paths that can never be served by a dynamic endpoint
RESERVED_PREFIXES: Tuple[str, ...] = (
    APIRoutes.ADMIN_UI,
    APIRoutes.ADMIN_API,
    APIRoutes.HEALTH,
)


def is_reserved_path(path: str) -> bool:
    """Check whether a path falls under a reserved prefix.

    Args:
        path: Request or declaration path

    Returns:
        True if the path belongs to the admin or health surface
    """
    return any(path.startswith(prefix) for prefix in RESERVED_PREFIXES)


class HTTPMethods:
    """HTTP methods accepted by endpoint declarations."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    ANY = "ANY"

    DECLARABLE = (GET, POST, PUT, DELETE, PATCH, ANY)
    ROUTABLE = [GET, POST, PUT, DELETE, PATCH, HEAD, OPTIONS]


class ParameterSources:
    """Where an endpoint reads its parameters from."""

    NONE = "none"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"
    MIXED = "mixed"

    ALL = (NONE, QUERY, HEADER, BODY, MIXED)


class ResponseTypes:
    """How a selected response rule is serialized."""

    JSON = "json"
    TEXT = "text"
    BINARY = "binary"
    IMAGE = "image"
    REDIRECT = "redirect"


class Collections:
    """Document store collection names."""

    ENDPOINTS = "endpoints"
    ASSETS = "assets"
    SETTINGS = "settings"
    REGISTRY = "registry"


# Document ids inside single-document collections
SETTINGS_DOCUMENT_ID = "server"
REGISTRY_META_ID = "meta"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".bin": "application/octet-stream",
}

EXPORT_FORMAT_VERSION = "1.0.0"


class LogIcons:
    """Emoji icons for consistent logging."""

    START = "🚀"
    STOP = "🛑"
    ERROR = "❌"
    WARNING = "⚠️"
    DATABASE = "📊"
    STORAGE = "📁"
    REGISTERED = "📝"
    UNREGISTERED = "🗑️"
    DYNAMIC = "🔄"
    CONFIG = "🔧"
    WORLD = "🌐"


class ErrorMessages:
    """Standard error messages."""

    # Dynamic dispatch
    ENDPOINT_NOT_FOUND = "Endpoint not found"
    AUTH_REQUIRED = "Authorization required"
    INVALID_TOKEN = "Invalid token"
    NO_RESPONSE = "No response configured"
    BINARY_NOT_CONFIGURED = "Binary response not configured"
    ASSET_FILE_NOT_FOUND = "Asset file not found"
    ASSET_NOT_FOUND = "Asset not found"
    INVALID_BODY = "Request body is not valid JSON"
    BODY_TOO_LARGE = "Request body too large"

    # Admin surface
    ADMIN_AUTH_REQUIRED = "Authentication required"
    SETUP_REQUIRED = "Setup required"
    SETUP_COMPLETE = "Setup already complete"
    INVALID_PASSWORD = "Invalid password"
    PASSWORD_TOO_SHORT = "Password must be at least 8 characters"
    PASSWORD_TOO_LONG = "Password must be at most 72 bytes"
    PATH_RESERVED = "Path is reserved"
    PATH_INVALID = "Path must start with /"
    INVALID_IMPORT = "Invalid configuration format"


MIN_PASSWORD_LENGTH = 8
# bcrypt only accepts up to 72 bytes of input
MAX_PASSWORD_BYTES = 72
