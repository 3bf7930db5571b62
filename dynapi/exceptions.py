"""Exception hierarchy for dynapi.

Two families live here:

- ``APIError`` and its subclasses terminate a request. Each carries the HTTP
  status, a machine-readable error code and optional details, and is turned
  into a JSON error body by ``APIErrorHandler``.
- Everything else (``ConditionError``, ``StorageError``,
  ``ConfigurationError``) is raised by lower layers and either absorbed
  locally or translated into an ``APIError`` at the edge.
"""

from typing import Any, Dict, Optional


class DynAPIError(Exception):
    """Base exception for all dynapi errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class APIError(DynAPIError):
    """Error that terminates a request with an HTTP status."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, details)
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    async def to_dict(self) -> Dict[str, Any]:
        """Serialize the error into a response payload.

        Returns:
            Dictionary with error code, message and optional details
        """
        data: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class NotFoundError(APIError):
    """No matching endpoint, or a referenced asset is missing."""

    status_code = 404
    error_code = "not_found"


class UnauthorizedError(APIError):
    """Missing or incorrect bearer token."""

    status_code = 401
    error_code = "unauthorized"


class BadRequestError(APIError):
    """Malformed request or missing required parameter."""

    status_code = 400
    error_code = "bad_request"


class ConflictError(APIError):
    """Declaration collides with an existing one."""

    status_code = 409
    error_code = "conflict"


class PayloadTooLargeError(APIError):
    """Request body exceeds the configured size limit."""

    status_code = 413
    error_code = "payload_too_large"


class InternalError(APIError):
    """Endpoint declaration cannot produce a response."""

    status_code = 500
    error_code = "internal_error"


class ConditionError(DynAPIError):
    """A response condition could not be tokenized, parsed or evaluated."""

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message, {"position": position} if position is not None else None)
        self.position = position


class StorageError(DynAPIError):
    """Base exception for document and asset storage failures."""


class PathTraversalError(StorageError):
    """A storage path resolves outside its root directory."""

    def __init__(self, message: str, path: str):
        super().__init__(message, {"path": path})
        self.path = path


class ConfigurationError(DynAPIError):
    """Invalid server or database configuration."""


__all__ = [
    "DynAPIError",
    "APIError",
    "NotFoundError",
    "UnauthorizedError",
    "BadRequestError",
    "ConflictError",
    "PayloadTooLargeError",
    "InternalError",
    "ConditionError",
    "StorageError",
    "PathTraversalError",
    "ConfigurationError",
]
