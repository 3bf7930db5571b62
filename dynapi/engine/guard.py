"""Per-endpoint bearer-token protection."""

import hmac
from typing import Mapping, Optional

from dynapi.constants import ErrorMessages
from dynapi.exceptions import UnauthorizedError
from dynapi.models import Endpoint


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` value."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip()


class AccessGuard:
    """Compare the request's bearer token with the endpoint's stored token."""

    def check(self, endpoint: Endpoint, headers: Mapping[str, str]) -> None:
        """Enforce protection for ``endpoint``.

        Args:
            endpoint: Matched declaration
            headers: Request headers with lower-cased keys

        Raises:
            UnauthorizedError: If the header is missing or the token differs
        """
        if not endpoint.protected:
            return

        authorization = headers.get("authorization")
        if not authorization:
            raise UnauthorizedError(ErrorMessages.AUTH_REQUIRED)

        token = bearer_token(authorization)
        expected = endpoint.token or ""
        if not token or not expected or not hmac.compare_digest(
            token.encode("utf-8"), expected.encode("utf-8")
        ):
            raise UnauthorizedError(ErrorMessages.INVALID_TOKEN)
