"""Admin password and session handling.

The admin password is stored as a bcrypt hash in the settings document.
Sessions are HS256 JWTs signed with the persisted session secret; rotating
the secret (on password change) invalidates every outstanding session.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Request

from dynapi.constants import (
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_LENGTH,
    ErrorMessages,
    LogIcons,
)
from dynapi.engine.guard import bearer_token
from dynapi.exceptions import BadRequestError, UnauthorizedError
from dynapi.registry.settings import SettingsStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"
JWT_ALGORITHM = "HS256"


class AdminAuthService:
    """Setup, login and session validation for the single admin account.

    Args:
        settings: Settings persistence holding the password hash and secret
        session_ttl_hours: Lifetime of issued session tokens
    """

    def __init__(self, settings: SettingsStore, session_ttl_hours: int = 24):
        self.settings = settings
        self.session_ttl = timedelta(hours=session_ttl_hours)

    @staticmethod
    def _hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def _verify_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

    @staticmethod
    def _check_length(password: Optional[str]) -> str:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise BadRequestError(ErrorMessages.PASSWORD_TOO_SHORT)
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise BadRequestError(ErrorMessages.PASSWORD_TOO_LONG)
        return password

    async def is_setup_complete(self) -> bool:
        return bool((await self.settings.load()).admin_password_hash)

    async def setup(self, password: Optional[str]) -> str:
        """Set the initial admin password and open a session.

        Raises:
            BadRequestError: If setup already happened or the password is too short
        """
        settings = await self.settings.load()
        if settings.admin_password_hash:
            raise BadRequestError(ErrorMessages.SETUP_COMPLETE)
        settings.admin_password_hash = self._hash_password(self._check_length(password))
        await self.settings.save(settings)
        logger.info(f"{LogIcons.CONFIG} Admin password configured")
        return self.issue_token(settings.session_secret or "")

    async def login(self, password: Optional[str]) -> str:
        """Verify the admin password and issue a session token.

        Raises:
            BadRequestError: If setup has not happened yet
            UnauthorizedError: If the password is wrong
        """
        settings = await self.settings.load()
        if not settings.admin_password_hash:
            raise BadRequestError(ErrorMessages.SETUP_REQUIRED)
        if not password or not self._verify_password(password, settings.admin_password_hash):
            raise UnauthorizedError(ErrorMessages.INVALID_PASSWORD)
        return self.issue_token(settings.session_secret or "")

    async def change_password(self, current: Optional[str], new: Optional[str]) -> str:
        """Replace the admin password and rotate the session secret.

        Returns:
            A fresh session token signed with the new secret
        """
        settings = await self.settings.load()
        if not current or not settings.admin_password_hash or not self._verify_password(
            current, settings.admin_password_hash
        ):
            raise UnauthorizedError("Current password is incorrect")
        settings.admin_password_hash = self._hash_password(self._check_length(new))
        settings.session_secret = secrets.token_hex(32)
        await self.settings.save(settings)
        logger.info(f"{LogIcons.CONFIG} Admin password changed, sessions invalidated")
        return self.issue_token(settings.session_secret)

    def issue_token(self, secret: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {"sub": "admin", "iat": now, "exp": now + self.session_ttl}
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)

    async def validate_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Decode a session token, returning its claims or None."""
        if not token:
            return None
        settings = await self.settings.load()
        try:
            return jwt.decode(token, settings.session_secret or "", algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

    async def require_admin(self, request: Request) -> Dict[str, Any]:
        """FastAPI dependency guarding the admin API.

        Accepts the ``session_token`` cookie or an ``Authorization: Bearer``
        header.

        Raises:
            UnauthorizedError: If no valid session is presented
        """
        token = request.cookies.get(SESSION_COOKIE) or bearer_token(
            request.headers.get("authorization")
        )
        claims = await self.validate_token(token)
        if claims is None:
            raise UnauthorizedError(ErrorMessages.ADMIN_AUTH_REQUIRED)
        return claims
