"""
Authentication gate for Pfaff Terminal.

A single configured admin account. The session lives in a signed cookie
(Starlette's SessionMiddleware) and carries:

    {"authenticated": True, "username": "...", "expiresAt": <unix seconds>}

States: anonymous -> authenticated on a successful login, authenticated ->
anonymous on logout or once expiresAt has passed.
"""

import logging
from typing import Any, MutableMapping, Optional

import bcrypt

from ..errors import AuthError, InternalError
from ..utils.clock import SystemClock

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
MAX_PASSWORD_BYTES = 72


class AuthService:
    def __init__(self, username: str, password_hash: str, session_max_age: int, clock=None):
        self.username = username
        self.password_hash = password_hash or ""
        self.session_max_age = session_max_age
        self.clock = clock or SystemClock()

    @property
    def enabled(self) -> bool:
        return bool(self.password_hash)

    def verify_credentials(self, username: str, password: str) -> bool:
        """
        Check a username/password pair against the configured account

        Raises:
            InternalError: the configured hash is not a valid bcrypt hash
        """
        if username != self.username or not self.password_hash:
            return False
        secret = password.encode("utf-8")
        # bcrypt only defines the first 72 bytes; newer releases refuse anything longer
        if len(secret) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(secret, self.password_hash.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Configured ADMIN_PASSWORD_HASH is not a valid bcrypt hash: {str(e)}")
            raise InternalError("Internal server error") from e

    def login(self, session: MutableMapping[str, Any], username: str, password: str) -> None:
        if not self.verify_credentials(username, password):
            logger.info(f"Failed login attempt for user {username!r}")
            raise AuthError(INVALID_CREDENTIALS)

        session.clear()
        session["authenticated"] = True
        session["username"] = username
        session["expiresAt"] = self.clock.timestamp() + self.session_max_age
        logger.info(f"User {username!r} logged in")

    def logout(self, session: MutableMapping[str, Any]) -> None:
        username = session.get("username")
        session.clear()
        if username:
            logger.info(f"User {username!r} logged out")

    def current_user(self, session: MutableMapping[str, Any]) -> Optional[str]:
        """Username of a live authenticated session; expired sessions are cleared"""
        if not session.get("authenticated"):
            return None
        expires_at = session.get("expiresAt")
        if expires_at is None or self.clock.timestamp() >= float(expires_at):
            logger.info(f"Session for {session.get('username')!r} expired")
            session.clear()
            return None
        return session.get("username")

    def require_user(self, session: MutableMapping[str, Any]) -> str:
        username = self.current_user(session)
        if username is None:
            raise AuthError("Authentication required")
        return username
