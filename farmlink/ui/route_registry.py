"""Route Registry.

Central registry for every navigable client route.  The view host
resolves each location through this registry, which applies the route
gate and tells it what to mount or where to go instead.

Adding a new page = one ``register()`` call.
Zero route-gate modifications required.
"""

from __future__ import annotations

from farmlink.logger import StructuredLogger
from farmlink.models.auth_models import SessionSnapshot
from farmlink.models.enums import Role, RouteAction, RouteState
from farmlink.ui import paths
from farmlink.ui.route_gate import (
    RouteDecision,
    dashboard_redirect,
    evaluate,
    protected_route,
    public_route,
)


class RouteEntry:
    """Metadata for a single registered route.

    Attributes
    ----------
    path:
        Route pattern; segments starting with ``:`` match any value
        (e.g. ``/dashboard/product/:id``).
    display_name:
        Human-readable name used for navigation menus.
    required_roles:
        Roles allowed to open the route.  Empty means any signed-in user.
    public:
        Auth pages (landing, login, register); bounced to the dashboard
        when already signed in.
    role_index:
        The dashboard index: resolves to the active role's landing page.
    """

    __slots__ = (
        "path",
        "display_name",
        "required_roles",
        "public",
        "role_index",
    )

    def __init__(
        self,
        path: str,
        display_name: str,
        required_roles: frozenset[Role],
        public: bool,
        role_index: bool,
    ) -> None:
        self.path = path
        self.display_name = display_name
        self.required_roles = required_roles
        self.public = public
        self.role_index = role_index

    def matches(self, path: str) -> bool:
        pattern = self.path.strip("/").split("/")
        segments = path.strip("/").split("/")
        if len(pattern) != len(segments):
            return False
        return all(
            expected.startswith(":") or expected == actual
            for expected, actual in zip(pattern, segments)
        )


class RouteRegistry:
    """Manages the collection of registered routes.

    Parameters
    ----------
    logger:
        Structured logger for registration and resolution events.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._entries: dict[str, RouteEntry] = {}
        self._logger = logger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(
        self,
        path: str,
        display_name: str,
        required_roles: frozenset[Role] = frozenset(),
        *,
        public: bool = False,
        role_index: bool = False,
    ) -> None:
        """Register a route.

        Parameters
        ----------
        path:
            Route pattern, unique within the registry.
        display_name:
            Label shown in navigation menus.
        required_roles:
            Roles permitted to open the route; empty for any signed-in user.
        public:
            If ``True``, the route is an auth page.
        role_index:
            If ``True``, the route redirects to the active role's dashboard.
        """
        if path in self._entries:
            self._logger.warning("Route '%s' already registered; overwriting.", path)
        self._entries[path] = RouteEntry(
            path=path,
            display_name=display_name,
            required_roles=required_roles,
            public=public,
            role_index=role_index,
        )
        self._logger.debug("Route registered: %s (%s)", path, display_name)

    def resolve(self, path: str, snapshot: SessionSnapshot) -> RouteDecision:
        """Gate *path* for the given session.

        Unknown paths redirect to the landing page once the session has
        finished loading.
        """
        entry = self._match(path)
        if entry is None:
            state = evaluate(snapshot)
            if state is RouteState.LOADING:
                return RouteDecision(state, RouteAction.PLACEHOLDER, None)
            self._logger.debug("No route for %s; redirecting to landing.", path)
            return RouteDecision(state, RouteAction.REDIRECT, paths.LANDING_PATH)

        if entry.public:
            return public_route(snapshot)

        decision = protected_route(snapshot, entry.required_roles)
        if entry.role_index and decision.action is RouteAction.RENDER:
            return RouteDecision(
                decision.state,
                RouteAction.REDIRECT,
                dashboard_redirect(snapshot.current_role),
            )
        return decision

    def get_routes_for_role(self, role: Role) -> list[RouteEntry]:
        """Return navigable dashboard routes for *role*, in registration order."""
        return [
            entry
            for entry in self._entries.values()
            if not entry.public
            and not entry.role_index
            and (not entry.required_roles or role in entry.required_roles)
        ]

    def get_route(self, path: str) -> RouteEntry:
        """Return the entry registered under *path*.

        Raises
        ------
        KeyError
            If *path* is not registered.
        """
        if path not in self._entries:
            raise KeyError(f"Route '{path}' is not registered.")
        return self._entries[path]

    def _match(self, path: str) -> RouteEntry | None:
        location = path.split("?", 1)[0]
        for entry in self._entries.values():
            if entry.matches(location):
                return entry
        return None


def build_default_registry(logger: StructuredLogger) -> RouteRegistry:
    """The marketplace's route table."""
    farmer = frozenset({Role.FARMER})
    officer = frozenset({Role.OFFICER})

    registry = RouteRegistry(logger)
    registry.register(paths.LANDING_PATH, "Home", public=True)
    registry.register(paths.LOGIN_PATH, "Sign in", public=True)
    registry.register(paths.REGISTER_PATH, "Create account", public=True)

    registry.register(paths.DASHBOARD_PATH, "Dashboard", role_index=True)
    registry.register(paths.MARKETPLACE_PATH, "Marketplace")
    registry.register("/dashboard/product/:id", "Product")
    registry.register("/dashboard/checkout", "Checkout")
    registry.register("/dashboard/orders", "My orders")

    registry.register(paths.FARMER_DASHBOARD_PATH, "Farm overview", farmer)
    registry.register("/dashboard/farmer/products", "My products", farmer)
    registry.register("/dashboard/farmer/orders", "Incoming orders", farmer)

    registry.register(paths.OFFICER_DASHBOARD_PATH, "Officer overview", officer)
    registry.register("/dashboard/officer/farmers", "Farmers", officer)
    return registry
