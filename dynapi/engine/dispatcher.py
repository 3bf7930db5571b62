"""Serialize a selected response rule according to the endpoint's response type."""

import base64
import binascii
import logging
import re
from pathlib import PurePosixPath
from typing import Optional, Tuple
from urllib.parse import quote

from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from dynapi.constants import DEFAULT_CONTENT_TYPE, ErrorMessages, ResponseTypes
from dynapi.exceptions import InternalError, NotFoundError, PathTraversalError
from dynapi.models import Endpoint, ResponseRule
from dynapi.storage.assets import AssetStore

from .templates import TemplateRenderer, to_text

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r'["\\\r\n]')


def content_disposition(file_name: str) -> str:
    """Build an ``inline`` disposition that survives non-Latin-1 file names.

    The plain ``filename`` carries an ASCII fallback; ``filename*`` carries
    the UTF-8 name percent-encoded.
    """
    cleaned = UNSAFE_FILENAME_CHARS.sub("", file_name)
    fallback = cleaned.encode("ascii", "replace").decode("ascii")
    value = f'inline; filename="{fallback}"'
    if fallback != cleaned:
        value += f"; filename*=UTF-8''{quote(cleaned, safe='')}"
    return value


def decode_base64(payload: str) -> bytes:
    """Decode inline base64, accepting ``data:`` URIs and missing padding.

    Raises:
        InternalError: If the payload is not base64
    """
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    payload = "".join(payload.split())
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise InternalError("Invalid base64 payload", {"reason": str(e)}) from e


class ResponseDispatcher:
    """Turn a rendered rule into a Starlette response."""

    def __init__(self, assets: AssetStore):
        self.assets = assets

    async def dispatch(
        self, endpoint: Endpoint, rule: ResponseRule, renderer: TemplateRenderer
    ) -> Response:
        response_type = endpoint.response_type

        if response_type == ResponseTypes.JSON:
            return JSONResponse(renderer.render_value(rule.data))

        if response_type == ResponseTypes.TEXT:
            text = rule.text or rule.data or ""
            return PlainTextResponse(renderer.render_string(to_text(text)))

        if response_type in (ResponseTypes.BINARY, ResponseTypes.IMAGE):
            return await self._binary(rule)

        if response_type == ResponseTypes.REDIRECT:
            return RedirectResponse(rule.redirect_url or rule.url or "/", status_code=302)

        logger.debug(f"Unknown response type '{response_type}' on endpoint {endpoint.id}")
        return JSONResponse(rule.data)

    async def _binary(self, rule: ResponseRule) -> Response:
        content, content_type = await self._binary_payload(rule)
        headers = {}
        if rule.file_name:
            headers["Content-Disposition"] = content_disposition(rule.file_name)
        return Response(content=content, media_type=content_type, headers=headers)

    async def _binary_payload(self, rule: ResponseRule) -> Tuple[bytes, str]:
        """Resolve bytes from asset path, asset id or inline base64, in that order."""
        if rule.asset_path:
            try:
                content = await self.assets.resolve_by_path(rule.asset_path)
            except PathTraversalError:
                content = None
            if content is None:
                raise NotFoundError(
                    ErrorMessages.ASSET_FILE_NOT_FOUND, {"assetPath": rule.asset_path}
                )
            ext = PurePosixPath(rule.asset_path).suffix
            return content, self._content_type(rule.content_type, None, ext)

        if rule.asset_id:
            resolved = await self.assets.resolve_by_id(rule.asset_id)
            if resolved is None:
                raise NotFoundError(ErrorMessages.ASSET_NOT_FOUND, {"assetId": rule.asset_id})
            asset, content = resolved
            return content, self._content_type(rule.content_type, asset.content_type, asset.ext)

        if rule.base64:
            return decode_base64(rule.base64), rule.content_type or DEFAULT_CONTENT_TYPE

        raise InternalError(ErrorMessages.BINARY_NOT_CONFIGURED)

    def _content_type(
        self, declared: Optional[str], recorded: Optional[str], ext: str
    ) -> str:
        return declared or recorded or self.assets.content_type_for(ext) or DEFAULT_CONTENT_TYPE
