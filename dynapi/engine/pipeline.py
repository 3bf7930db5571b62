"""The dynamic request pipeline.

Matcher -> AccessGuard -> ParameterExtractor -> ConditionEvaluator ->
TemplateRenderer -> ResponseDispatcher. Every stage may end the request by
raising an ``APIError``; nothing persists between requests other than the
registry snapshot.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi.responses import Response

from dynapi.constants import ErrorMessages, LogIcons
from dynapi.exceptions import InternalError
from dynapi.registry.snapshot import RegistrySnapshot
from dynapi.storage.assets import AssetStore

from .conditions import ConditionEvaluator, ConditionScope
from .context import RequestContext
from .dispatcher import ResponseDispatcher
from .guard import AccessGuard
from .matcher import RequestMatcher
from .parameters import ParameterExtractor
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)

BodyLoader = Callable[[], Awaitable[Any]]


class DynamicRequestHandler:
    """Serve one request against the current registry snapshot.

    Args:
        snapshot: Versioned registry view provider
        assets: Asset store used by binary and image responses
    """

    def __init__(self, snapshot: RegistrySnapshot, assets: AssetStore):
        self.snapshot = snapshot
        self.matcher = RequestMatcher()
        self.guard = AccessGuard()
        self.extractor = ParameterExtractor()
        self.evaluator = ConditionEvaluator()
        self.dispatcher = ResponseDispatcher(assets)

    async def handle(
        self, context: RequestContext, body_loader: Optional[BodyLoader] = None
    ) -> Response:
        """Produce the response for ``context``.

        The body is loaded only after the access guard passes, so a malformed
        body on a protected endpoint still answers 401 to a bad token.

        Raises:
            NotFoundError: No enabled endpoint, or a missing asset
            UnauthorizedError: Bad or missing bearer token
            BadRequestError: Missing required parameter or malformed JSON body
            InternalError: No usable response rule or binary source
        """
        view = await self.snapshot.current()
        endpoint = self.matcher.match(view.endpoints, context.method, context.path)
        self.guard.check(endpoint, context.headers)

        if body_loader is not None:
            context.body = await body_loader()

        params = self.extractor.extract(endpoint, context)
        self.extractor.validate(endpoint, params)

        scope = ConditionScope(
            query=context.query,
            headers=context.headers,
            body=context.body,
            params=params,
            method=context.method,
        )
        rule = self.evaluator.select(endpoint.responses, scope, endpoint.id)
        if rule is None:
            raise InternalError(ErrorMessages.NO_RESPONSE, {"endpoint_id": endpoint.id})

        logger.debug(
            f"{LogIcons.DYNAMIC} {context.method} {context.path} -> "
            f"endpoint {endpoint.id} ({endpoint.response_type})"
        )
        renderer = TemplateRenderer(context, params)
        return await self.dispatcher.dispatch(endpoint, rule, renderer)
