"""Unified error handling for the dynapi server.

Every error leaving the server, whether from the dynamic engine or the
admin surface, is rendered here into one JSON shape::

    {error_code, message, details?, timestamp, path, request_id}
"""

import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from dynapi.exceptions import APIError
from dynapi.models import utc_now_iso

logger = logging.getLogger(__name__)

STATUS_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    500: "internal_error",
}


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _log_for_status(status_code: int, message: str, extra: Dict[str, Any]) -> None:
    if status_code >= 500:
        logger.error(message, exc_info=True, extra=extra)
    else:
        # Client errors (4xx) stay at DEBUG to keep logs clean
        logger.debug(message, extra=extra)


class APIErrorHandler:
    """Centralized exception-to-response translation with request context."""

    @staticmethod
    def create_error_response(
        error_code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None,
        request: Optional[Request] = None,
    ) -> JSONResponse:
        """Create a standardized error response.

        Args:
            error_code: Error code identifier
            message: Error message
            status_code: HTTP status code
            details: Additional error details
            request: Optional request object for context

        Returns:
            JSONResponse with error details
        """
        content: Dict[str, Any] = {"error_code": error_code, "message": message}
        if details:
            content["details"] = details
        content["timestamp"] = utc_now_iso()
        if request is not None:
            content["path"] = request.url.path
            content["request_id"] = _request_id(request)

        headers = {}
        if request is not None and _request_id(request):
            headers["X-Request-ID"] = str(_request_id(request))
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    @staticmethod
    async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
        """Centralized error handling with request context.

        Args:
            request: FastAPI request object
            exc: Exception that occurred

        Returns:
            JSONResponse with error details
        """
        context = {"path": request.url.path, "method": request.method}

        if isinstance(exc, APIError):
            _log_for_status(
                exc.status_code,
                f"API Error [{exc.error_code}]: {exc.message}",
                {**context, "error_code": exc.error_code, "status_code": exc.status_code},
            )
            payload = await exc.to_dict()
            return APIErrorHandler.create_error_response(
                payload["error_code"],
                payload["message"],
                exc.status_code,
                payload.get("details"),
                request,
            )

        if isinstance(exc, (RequestValidationError, ValidationError)):
            logger.debug(f"Validation error: {exc}", extra=context)
            details = [
                {
                    "field": " -> ".join(str(loc) for loc in err.get("loc", [])),
                    "type": err.get("type", "validation_error"),
                    "message": err.get("msg", "Validation failed"),
                }
                for err in exc.errors()
            ]
            message = "Validation failed"
            if details:
                message += ": " + "; ".join(f"{d['field']}: {d['message']}" for d in details)
            return APIErrorHandler.create_error_response(
                "validation_error", message, 422, details, request
            )

        if isinstance(exc, HTTPException):
            error_code = STATUS_ERROR_CODES.get(exc.status_code, "internal_error")
            detail = exc.detail
            if detail is None:
                message = "An error occurred"
            elif isinstance(detail, dict):
                message = str(detail.get("message") or detail.get("error") or detail)
            else:
                message = str(detail)
            _log_for_status(
                exc.status_code,
                f"HTTP Error [{exc.status_code}]: {message}",
                {**context, "error_code": error_code, "status_code": exc.status_code},
            )
            return APIErrorHandler.create_error_response(
                error_code, message, exc.status_code, None, request
            )

        logger.error(
            f"Unexpected error: {type(exc).__name__}: {exc}",
            exc_info=exc,
            extra={**context, "error_type": type(exc).__name__},
        )
        return APIErrorHandler.create_error_response(
            "internal_error", "An unexpected error occurred", 500, None, request
        )


async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every request with a ``request_id`` echoed as ``X-Request-ID``."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


__all__ = ["APIErrorHandler", "request_id_middleware"]
