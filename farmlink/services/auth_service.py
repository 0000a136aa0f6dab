"""
Authentication Service.

Single orchestrator for every authentication concern of the FarmLink
client: registration, login, logout, role switching and role
acquisition, profile maintenance, phone verification and password
recovery.

Sits between the ``SessionContext`` and the ``ApiClient`` / session
stores so that views remain thin form handlers ("Thin UI" rule).  The
gateway is the only writer of the token, the user record and the active
role apart from the teardown performed by ``SessionTerminator``.

Failures surface as classified ``ApiError`` subclasses from
``farmlink.errors``; the caller never inspects raw HTTP responses.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from farmlink.auth import SessionStore, SessionTerminator, TokenStore
from farmlink.errors import SessionStateError, UnknownError, ValidationError
from farmlink.logger import StructuredLogger
from farmlink.models.auth_models import Acknowledgement, AuthResponse, UploadResult
from farmlink.models.enums import Role, TokenStatus
from farmlink.models.user import User
from farmlink.services.api_client import ApiClient, ProgressCallback, UploadFile
from farmlink.services.base_service import BaseService

_ModelT = TypeVar("_ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ROLES_REQUIRED: str = "Please select at least one role."


def _coerce_role(role: Role | str) -> Role:
    """Return *role* as a ``Role``; unknown values are a session-state error."""
    try:
        return Role(role)
    except ValueError:
        raise SessionStateError(f"Unknown role '{role}'.") from None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AuthService(BaseService):
    """Centralised authentication gateway.

    Receives all infrastructure dependencies via ``__init__`` and
    exposes one coroutine per backend auth flow plus a handful of pure
    session queries.

    Parameters
    ----------
    api:
        Request dispatcher used for every backend call.
    tokens:
        Bearer-token store.
    session:
        User and active-role store.
    terminator:
        Shared session teardown (logout, reaping).
    logger:
        Structured JSON logger for audit-grade logging.
    """

    def __init__(
        self,
        api: ApiClient,
        tokens: TokenStore,
        session: SessionStore,
        terminator: SessionTerminator,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._api: ApiClient = api
        self._tokens: TokenStore = tokens
        self._session: SessionStore = session
        self._terminator: SessionTerminator = terminator

    # ==================================================================
    # Registration & login
    # ==================================================================

    async def register(self, info: dict[str, Any]) -> AuthResponse:
        """Create an account and sign it in.

        The only client-side check is that at least one role was
        selected; every other field is validated by the backend.

        Parameters
        ----------
        info:
            Registration form: ``full_name``, ``phone_number``,
            ``password``, ``roles`` and optional role-specific fields.

        Returns
        -------
        AuthResponse

        Raises
        ------
        ValidationError
            With ``errors["roles"]`` when no role was selected (no
            network call is made), or as classified from a 422 reply.
        """
        if not info.get("roles"):
            raise ValidationError(
                _ROLES_REQUIRED, status=None, errors={"roles": [_ROLES_REQUIRED]},
            )

        body = await self._api.post("/auth/register", info)
        auth = self._parse(AuthResponse, body)
        self._establish_session(auth)

        self._logger.info(
            "User registered: %s (roles: %s)",
            auth.user.full_name,
            ", ".join(auth.user.roles),
            extra={"event": "REGISTER", "user_id": auth.user.id},
        )
        return auth

    async def login(self, credentials: dict[str, Any]) -> AuthResponse:
        """Authenticate with ``phone_number`` and ``password``.

        Stores the token and user, and picks ``user.roles[0]`` as the
        active role unless a role the user still holds is already
        persisted.
        """
        body = await self._api.post("/auth/login", credentials)
        auth = self._parse(AuthResponse, body)
        self._establish_session(auth)

        self._logger.info(
            "User authenticated: %s (role: %s)",
            auth.user.full_name,
            self._session.get_active_role(),
            extra={"event": "LOGIN", "user_id": auth.user.id},
        )
        return auth

    def logout(self) -> None:
        """Tear the session down and navigate to the login page.

        Terminal: whatever view was mounted is discarded by the
        navigation.
        """
        self._terminator.terminate("logout")

    # ==================================================================
    # Roles
    # ==================================================================

    async def switch_role(self, role: Role | str) -> Acknowledgement:
        """Make *role* the active role.

        The user record is not refetched.  When the backend reissues the
        bearer token the new token replaces the stored one.

        Raises
        ------
        SessionStateError
            When nobody is signed in or the user does not hold *role*.
            No network call is made in that case.
        """
        target = _coerce_role(role)
        user = self._session.get_user()
        if user is None:
            raise SessionStateError("Sign in before switching roles.")
        if not user.has_role(target):
            raise SessionStateError(f"Your account does not hold the '{target}' role.")

        body = await self._api.post("/auth/switch-role", {"role": str(target)})
        ack = self._parse(Acknowledgement, body or {})
        if ack.token:
            self._tokens.set_token(ack.token)
        self._session.set_active_role(target)

        self._logger.info(
            "Active role switched to %s.",
            target,
            extra={"event": "ROLE_SWITCH", "user_id": user.id, "role": str(target)},
        )
        return ack

    async def add_role(
        self,
        role: Role | str,
        role_data: Optional[dict[str, Any]] = None,
    ) -> User:
        """Acquire an additional role; the reply replaces the stored user."""
        target = _coerce_role(role)
        body = await self._api.post("/auth/add-role", {"role": str(target), **(role_data or {})})
        user = self._store_user(body)

        self._logger.info(
            "Role %s added.",
            target,
            extra={"event": "ROLE_ADDED", "user_id": user.id, "role": str(target)},
        )
        return user

    # ==================================================================
    # Profile
    # ==================================================================

    async def get_profile(self) -> User:
        """Fetch the authoritative profile (``GET /auth/me``) and store it."""
        return self._store_user(await self._api.get("/auth/me"))

    async def update_profile(self, fields: dict[str, Any]) -> User:
        """Send a profile update; the server's copy overwrites the stored user."""
        user = self._store_user(await self._api.put("/auth/profile", fields))
        self._logger.info(
            "Profile updated (%s).",
            ", ".join(sorted(fields)),
            extra={"event": "PROFILE_UPDATE", "user_id": user.id},
        )
        return user

    async def upload_profile_image(
        self,
        file: UploadFile,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """Upload a profile picture and record its URL on the stored user."""
        result = await self._api.upload_file("/auth/profile-image", file, on_progress)
        user = self._session.get_user()
        if user is not None and result.image_url:
            self._session.set_user(user.model_copy(update={"profile_image_url": result.image_url}))
        return result

    async def change_password(self, current_password: str, new_password: str) -> Acknowledgement:
        body = await self._api.post("/auth/change-password", {
            "current_password": current_password,
            "new_password": new_password,
        })
        return self._parse(Acknowledgement, body or {})

    # ==================================================================
    # Phone verification & password recovery
    # ==================================================================

    async def verify_phone(self, phone_number: str, otp: str) -> Acknowledgement:
        body = await self._api.post("/auth/verify-phone", {"phone_number": phone_number, "otp": otp})
        return self._parse(Acknowledgement, body or {})

    async def resend_otp(self, phone_number: str) -> Acknowledgement:
        body = await self._api.post("/auth/resend-otp", {"phone_number": phone_number})
        return self._parse(Acknowledgement, body or {})

    async def request_password_reset(self, identifier: str) -> Acknowledgement:
        """Start password recovery; *identifier* is a phone number or email."""
        body = await self._api.post("/auth/forgot-password", {"identifier": identifier})
        return self._parse(Acknowledgement, body or {})

    async def reset_password(self, token: str, new_password: str) -> Acknowledgement:
        body = await self._api.post("/auth/reset-password", {"token": token, "password": new_password})
        return self._parse(Acknowledgement, body or {})

    # ==================================================================
    # Session queries
    # ==================================================================

    def is_authenticated(self) -> bool:
        """``True`` iff the token is valid and a user is stored.

        Pure query: an expired token is reported, never cleared.  Use
        :meth:`reap_session_if_expired` for the teardown.
        """
        return self._tokens.is_valid() and self._session.get_user() is not None

    def check_expiry(self) -> TokenStatus:
        return self._tokens.check_expiry()

    def reap_session_if_expired(self) -> bool:
        """Tear the session down when the stored token has expired.

        Returns ``True`` when a teardown happened.
        """
        return self._terminator.reap_if_expired()

    def get_current_user(self) -> Optional[User]:
        return self._session.get_user()

    def get_current_role(self) -> Optional[Role]:
        """The persisted active role, else the user's first role, else ``None``."""
        role = self._session.get_active_role()
        if role is not None:
            return role
        user = self._session.get_user()
        return user.roles[0] if user is not None else None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _establish_session(self, auth: AuthResponse) -> None:
        """Persist token, then user, then the default active role."""
        self._tokens.set_token(auth.token)
        self._session.set_user(auth.user)
        self._ensure_active_role(auth.user)

    def _store_user(self, body: Any) -> User:
        user = self._parse(User, body)
        self._session.set_user(user)
        self._ensure_active_role(user)
        return user

    def _ensure_active_role(self, user: User) -> None:
        """Keep the active role an element of ``user.roles``."""
        current = self._session.get_active_role()
        if current is None or not user.has_role(current):
            self._session.set_active_role(user.roles[0])

    def _parse(self, model: type[_ModelT], body: Any) -> _ModelT:
        """Validate a backend body; an unexpected shape is an ``UnknownError``."""
        try:
            return model.model_validate(body)
        except SchemaError as exc:
            self._logger.warning(
                "Unexpected %s payload from backend: %d validation error(s).",
                model.__name__,
                exc.error_count(),
            )
            raise UnknownError() from exc
