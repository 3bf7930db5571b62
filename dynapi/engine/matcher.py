"""Resolve (method, path) to an endpoint declaration."""

from typing import Iterable

from dynapi.constants import ErrorMessages, is_reserved_path
from dynapi.exceptions import NotFoundError
from dynapi.models import Endpoint


class RequestMatcher:
    """Exact-string, first-match-wins endpoint lookup."""

    def match(self, endpoints: Iterable[Endpoint], method: str, path: str) -> Endpoint:
        """Return the first enabled declaration serving ``method`` on ``path``.

        Args:
            endpoints: Declarations in storage order
            method: Request method
            path: Request path, query string already stripped

        Raises:
            NotFoundError: If the path is reserved or nothing matches
        """
        if is_reserved_path(path):
            raise NotFoundError("Not found", {"path": path})

        for endpoint in endpoints:
            if endpoint.enabled and endpoint.path == path and endpoint.allows_method(method):
                return endpoint

        raise NotFoundError(
            ErrorMessages.ENDPOINT_NOT_FOUND, {"method": method.upper(), "path": path}
        )
