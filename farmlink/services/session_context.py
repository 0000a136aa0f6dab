"""
Session Context.

Process-wide, observable view of the session for the UI layer.  The
context never holds authoritative state of its own: after every
mutation (and after every navigation, which is how the dispatcher's 401
teardown becomes visible) it re-reads the token, user and role through
the ``AuthService`` and publishes a fresh, frozen ``SessionSnapshot``.

Constructed once by ``create_services`` and injected where needed; there
is no module-level instance.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from farmlink.logger import StructuredLogger
from farmlink.models.auth_models import Acknowledgement, AuthResponse, SessionSnapshot
from farmlink.models.enums import Role
from farmlink.models.user import User
from farmlink.services.auth_service import AuthService
from farmlink.services.base_service import BaseService
from farmlink.ui.navigator import Navigator

SnapshotListener = Callable[[SessionSnapshot], None]


class SessionContext(BaseService):
    """Observable session state shared by views and the route gate.

    Parameters
    ----------
    auth:
        The authentication gateway; sole source of session reads and
        writes.
    navigator:
        Subscribed to so that teardowns triggered outside this context
        (logout, 401 from any request) are reflected immediately.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        auth: AuthService,
        navigator: Navigator,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._auth: AuthService = auth
        self._snapshot: SessionSnapshot = SessionSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._bootstrapped: bool = False
        self._unsubscribe_navigation: Callable[[], None] = navigator.subscribe(
            lambda _path: self._sync(),
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener* for every new snapshot; returns an unsubscriber."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        """Detach from the navigator and drop all listeners."""
        self._unsubscribe_navigation()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bootstrap(self) -> SessionSnapshot:
        """Load the persisted session once at startup.

        An expired session is reaped first.  ``is_loading`` becomes
        ``False`` exactly once; later calls return the current snapshot
        untouched.
        """
        if self._bootstrapped:
            return self._snapshot
        self._bootstrapped = True

        reaped = self._auth.reap_session_if_expired()
        snapshot = self._sync(is_loading=False)
        self._logger.info(
            "Session bootstrapped (authenticated: %s).",
            snapshot.is_authenticated,
            extra={"event": "SESSION_BOOTSTRAP", "reaped": reaped},
        )
        return snapshot

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    async def register(self, info: dict[str, Any]) -> AuthResponse:
        self._sync(is_loading=True)
        try:
            return await self._auth.register(info)
        finally:
            self._sync(is_loading=False)

    async def login(self, credentials: dict[str, Any]) -> AuthResponse:
        self._sync(is_loading=True)
        try:
            return await self._auth.login(credentials)
        finally:
            self._sync(is_loading=False)

    def logout(self) -> None:
        try:
            self._auth.logout()
        finally:
            self._sync()

    async def switch_role(self, role: Role | str) -> Acknowledgement:
        try:
            return await self._auth.switch_role(role)
        finally:
            self._sync()

    async def update_user(self, fields: dict[str, Any]) -> User:
        try:
            return await self._auth.update_profile(fields)
        finally:
            self._sync()

    async def add_role(
        self,
        role: Role | str,
        role_data: Optional[dict[str, Any]] = None,
    ) -> User:
        try:
            return await self._auth.add_role(role, role_data)
        finally:
            self._sync()

    async def refresh_user(self) -> User:
        """Refetch the profile from the backend and republish."""
        try:
            return await self._auth.get_profile()
        finally:
            self._sync()

    # ------------------------------------------------------------------
    # Role helpers
    # ------------------------------------------------------------------

    def has_role(self, role: Role | str) -> bool:
        user = self._snapshot.user
        return user is not None and user.has_role(role)

    def is_buyer(self) -> bool:
        return self.has_role(Role.BUYER)

    def is_farmer(self) -> bool:
        return self.has_role(Role.FARMER)

    def is_officer(self) -> bool:
        return self.has_role(Role.OFFICER)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sync(self, is_loading: Optional[bool] = None) -> SessionSnapshot:
        """Rebuild the snapshot from storage and notify on change."""
        user = self._auth.get_current_user()
        snapshot = SessionSnapshot(
            user=user,
            current_role=self._auth.get_current_role() if user is not None else None,
            is_authenticated=self._auth.is_authenticated(),
            is_loading=self._snapshot.is_loading if is_loading is None else is_loading,
        )
        if snapshot != self._snapshot:
            self._snapshot = snapshot
            for listener in list(self._listeners):
                listener(snapshot)
        return self._snapshot
