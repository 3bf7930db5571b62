"""Framework-neutral view of an incoming request."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from fastapi import Request
from starlette.types import Message

from dynapi.constants import ErrorMessages
from dynapi.exceptions import BadRequestError, PayloadTooLargeError

FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@dataclass
class RequestContext:
    """Everything the engine reads from a request.

    Attributes:
        method: Upper-cased HTTP method
        path: Request path without the query string
        raw_path: Request path including the query string
        query: Query-string key/value map
        headers: Header map with lower-cased keys
        body: Parsed request body, or None when absent
    """

    method: str
    path: str
    raw_path: str = ""
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {key.lower(): value for key, value in self.headers.items()}
        if not self.raw_path:
            self.raw_path = self.path

    @property
    def body_object(self) -> Dict[str, Any]:
        """The body when it is a JSON object, else an empty dict."""
        return self.body if isinstance(self.body, dict) else {}

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        """Build a context from a Starlette request, without reading the body."""
        query_string = request.url.query
        path = request.url.path
        return cls(
            method=request.method,
            path=path,
            raw_path=f"{path}?{query_string}" if query_string else path,
            query=dict(request.query_params),
            headers=dict(request.headers),
        )


def _media_type(headers: Mapping[str, str]) -> str:
    return headers.get("content-type", "").split(";")[0].strip().lower()


async def read_raw_body(request: Request, limit: Optional[int] = None) -> bytes:
    """Read the request body, counting streamed bytes against ``limit``.

    Raises:
        PayloadTooLargeError: If more than ``limit`` bytes arrive
    """
    declared = request.headers.get("content-length")
    if limit is not None and declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(ErrorMessages.BODY_TOO_LARGE, {"limit": limit})

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if limit is not None and size > limit:
            raise PayloadTooLargeError(ErrorMessages.BODY_TOO_LARGE, {"limit": limit})
        chunks.append(chunk)
    return b"".join(chunks)


async def read_body(request: Request, limit: Optional[int] = None) -> Optional[Any]:
    """Parse the request body according to its content type.

    JSON bodies become Python values, forms become flat dicts of their text
    fields, ``text/*`` bodies stay strings. An empty body is None.

    Raises:
        BadRequestError: If a JSON content type carries malformed JSON
        PayloadTooLargeError: If the body exceeds ``limit`` bytes
    """
    raw = await read_raw_body(request, limit)
    if not raw:
        return None

    media_type = _media_type(request.headers)
    if media_type in FORM_TYPES:
        # The stream is spent; replay the buffered bytes to the form parser
        async def replay() -> Message:
            return {"type": "http.request", "body": raw, "more_body": False}

        form = await Request(request.scope, replay).form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    text = raw.decode("utf-8", errors="replace")
    if media_type.startswith("text/"):
        return text

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        if media_type == "application/json" or media_type.endswith("+json"):
            raise BadRequestError(ErrorMessages.INVALID_BODY, {"reason": str(e)}) from e
        return text
