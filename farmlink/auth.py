"""
Authentication & Session State.

Holds the three durable pieces of client session state, each under its
own storage key:

- ``auth_token``   : the bearer token (``TokenStore``)
- ``user_data``    : the user record as JSON (``SessionStore``)
- ``current_role`` : the active role (``SessionStore``)

``SessionTerminator`` is the single place that tears all three down and
sends the UI back to the login entry point; logout, the dispatcher's
401 handler and expiry reaping all go through it.

Usage::

    from farmlink.auth import SessionStore, TokenStore
    from farmlink.storage import MemoryStorage

    storage = MemoryStorage()
    tokens = TokenStore(storage, logger)
    session = SessionStore(storage, tokens, logger)
    session.set_user(user)
    user = session.get_user()
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

import jwt
from pydantic import ValidationError as SchemaError

from farmlink.logger import StructuredLogger
from farmlink.models.enums import Role, TokenStatus
from farmlink.models.user import User
from farmlink.storage import ClientStorage
from farmlink.ui.navigator import Navigator
from farmlink.ui.paths import LOGIN_PATH

TOKEN_KEY: str = "auth_token"
USER_KEY: str = "user_data"
ROLE_KEY: str = "current_role"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenStore:
    """Reads and writes the bearer token and decodes its expiry claim.

    The token's signature is never verified client-side; only its
    ``exp`` claim is read.  Decoding failures are reported as
    ``TokenStatus.MALFORMED`` and never raised.
    """

    def __init__(
        self,
        storage: ClientStorage,
        logger: StructuredLogger,
        clock: Clock = _utcnow,
    ) -> None:
        self._storage: ClientStorage = storage
        self._logger: StructuredLogger = logger
        self._clock: Clock = clock

    def set_token(self, token: str) -> None:
        """Persist *token*.  No validation is performed at write time."""
        self._storage.set_item(TOKEN_KEY, token)

    def get_token(self) -> Optional[str]:
        return self._storage.get_item(TOKEN_KEY)

    def clear(self) -> None:
        self._storage.remove_item(TOKEN_KEY)

    def decode_expiry(self) -> Optional[datetime]:
        """Return the token's ``exp`` as an aware UTC datetime.

        ``None`` when there is no token or it cannot be decoded.
        """
        token = self.get_token()
        if not token:
            return None
        return self._decode_expiry(token)

    def check_expiry(self) -> TokenStatus:
        """Classify the stored token.  Pure query; never raises."""
        token = self.get_token()
        if not token:
            return TokenStatus.MISSING

        expiry = self._decode_expiry(token)
        if expiry is None:
            return TokenStatus.MALFORMED
        if expiry <= self._clock():
            return TokenStatus.EXPIRED
        return TokenStatus.VALID

    def is_valid(self) -> bool:
        """``True`` only for a present, decodable, unexpired token."""
        return self.check_expiry() is TokenStatus.VALID

    def _decode_expiry(self, token: str) -> Optional[datetime]:
        try:
            claims = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False},
            )
            return datetime.fromtimestamp(float(claims["exp"]), tz=timezone.utc)
        except (jwt.PyJWTError, KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            self._logger.debug("Bearer token could not be decoded: %s", type(exc).__name__)
            return None


class SessionStore:
    """Reads and writes the current user record and the active role.

    Parameters
    ----------
    storage:
        Durable client storage shared with the ``TokenStore``.
    tokens:
        The token store; ``clear()`` removes the token together with the
        user and role.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        storage: ClientStorage,
        tokens: TokenStore,
        logger: StructuredLogger,
    ) -> None:
        self._storage: ClientStorage = storage
        self._tokens: TokenStore = tokens
        self._logger: StructuredLogger = logger

    def set_user(self, user: User) -> None:
        self._storage.set_item(USER_KEY, user.model_dump_json())

    def get_user(self) -> Optional[User]:
        """Return the stored user, or ``None`` if absent or unreadable."""
        raw = self._storage.get_item(USER_KEY)
        if raw is None:
            return None
        try:
            return User.model_validate_json(raw)
        except (SchemaError, ValueError) as exc:
            self._logger.warning("Stored user record is unreadable: %s", exc)
            return None

    def set_active_role(self, role: Role) -> None:
        self._storage.set_item(ROLE_KEY, str(role))

    def get_active_role(self) -> Optional[Role]:
        """Return the persisted active role; unknown values read as ``None``."""
        raw = self._storage.get_item(ROLE_KEY)
        if raw is None:
            return None
        try:
            return Role(raw)
        except ValueError:
            self._logger.warning("Ignoring unknown stored role '%s'.", raw)
            return None

    def clear(self) -> None:
        """Remove token, user and role.

        Three sequential removals: storage is local and only ever touched
        from the event-loop thread.
        """
        self._tokens.clear()
        self._storage.remove_item(USER_KEY)
        self._storage.remove_item(ROLE_KEY)


class SessionTerminator:
    """Performs session teardown: clear all session keys, then navigate
    to the login entry point.

    Shared by ``AuthService.logout``, the ``ApiClient`` 401 handler and
    expiry reaping so every teardown path behaves identically.
    """

    def __init__(
        self,
        session: SessionStore,
        tokens: TokenStore,
        navigator: Navigator,
        logger: StructuredLogger,
    ) -> None:
        self._session: SessionStore = session
        self._tokens: TokenStore = tokens
        self._navigator: Navigator = navigator
        self._logger: StructuredLogger = logger

    def terminate(self, reason: str) -> None:
        """Tear the session down and redirect to ``LOGIN_PATH``."""
        user = self._session.get_user()
        self._session.clear()
        self._logger.info(
            "Session terminated (%s).",
            reason,
            extra={
                "event": "SESSION_TEARDOWN",
                "reason": reason,
                "user_id": user.id if user is not None else "unknown",
            },
        )
        self._navigator.redirect(LOGIN_PATH)

    def reap_if_expired(self) -> bool:
        """Terminate the session when the stored token has expired.

        Returns ``True`` when a teardown happened.  Missing or malformed
        tokens are left alone: they already read as unauthenticated.
        """
        if self._tokens.check_expiry() is not TokenStatus.EXPIRED:
            return False
        self.terminate("token_expired")
        return True
