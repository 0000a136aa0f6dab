"""Unit tests for the route gate and route registry."""

import pytest

from farmlink.models.auth_models import SessionSnapshot
from farmlink.models.enums import Role, RouteAction, RouteState
from farmlink.models.user import User
from farmlink.ui.route_gate import dashboard_redirect, evaluate, protected_route, public_route
from farmlink.ui.route_registry import RouteRegistry, build_default_registry

pytestmark = pytest.mark.unit

LOADING = SessionSnapshot()
SIGNED_OUT = SessionSnapshot(is_loading=False)


def _signed_in(role, roles=None):
    user = User(
        id="u1",
        full_name="Kofi",
        phone_number="+233200000000",
        roles=roles or [role],
    )
    return SessionSnapshot(user=user, current_role=role, is_authenticated=True, is_loading=False)


class TestEvaluate:
    """Transition function of the gate."""

    def test_loading_wins(self):
        assert evaluate(LOADING, [Role.FARMER]) is RouteState.LOADING

    def test_unauthenticated(self):
        assert evaluate(SIGNED_OUT) is RouteState.UNAUTHENTICATED

    def test_no_required_roles(self):
        assert evaluate(_signed_in(Role.BUYER)) is RouteState.AUTHENTICATED_AUTHORIZED

    def test_role_not_required(self):
        state = evaluate(_signed_in(Role.BUYER), [Role.OFFICER])
        assert state is RouteState.AUTHENTICATED_UNAUTHORIZED

    def test_active_role_decides_not_held_roles(self):
        snapshot = _signed_in(Role.BUYER, roles=[Role.BUYER, Role.FARMER])
        assert evaluate(snapshot, [Role.FARMER]) is RouteState.AUTHENTICATED_UNAUTHORIZED
        assert evaluate(snapshot, [Role.FARMER, Role.BUYER]) is RouteState.AUTHENTICATED_AUTHORIZED


class TestProtectedRoute:
    def test_placeholder_while_loading(self):
        decision = protected_route(LOADING)
        assert decision.action is RouteAction.PLACEHOLDER
        assert decision.target is None

    def test_signed_out_redirects_to_login(self):
        decision = protected_route(SIGNED_OUT, [Role.FARMER])
        assert decision.action is RouteAction.REDIRECT
        assert decision.target == "/login"

    def test_wrong_role_redirects_to_dashboard(self):
        decision = protected_route(_signed_in(Role.BUYER), [Role.OFFICER])
        assert decision.state is RouteState.AUTHENTICATED_UNAUTHORIZED
        assert decision.action is RouteAction.REDIRECT
        assert decision.target == "/dashboard"

    def test_authorized_renders(self):
        decision = protected_route(_signed_in(Role.OFFICER), [Role.OFFICER])
        assert decision.action is RouteAction.RENDER


class TestPublicRoute:
    def test_placeholder_while_loading(self):
        assert public_route(LOADING).action is RouteAction.PLACEHOLDER

    def test_signed_out_renders(self):
        assert public_route(SIGNED_OUT).action is RouteAction.RENDER

    def test_signed_in_bounced_to_dashboard(self):
        decision = public_route(_signed_in(Role.FARMER))
        assert decision.action is RouteAction.REDIRECT
        assert decision.target == "/dashboard"


class TestDashboardRedirect:
    @pytest.mark.parametrize(
        ("role", "path"),
        [
            (Role.FARMER, "/dashboard/farmer"),
            (Role.OFFICER, "/dashboard/officer"),
            (Role.BUYER, "/dashboard/marketplace"),
            (None, "/dashboard/marketplace"),
            ("farmer", "/dashboard/farmer"),
            ("auditor", "/dashboard/marketplace"),
        ],
    )
    def test_mapping(self, role, path):
        assert dashboard_redirect(role) == path


class TestRouteRegistry:
    """Path resolution through the default route table."""

    @pytest.fixture
    def registry(self, logger):
        return build_default_registry(logger)

    def test_dashboard_index_follows_active_role(self, registry):
        decision = registry.resolve("/dashboard", _signed_in(Role.OFFICER))
        assert decision.action is RouteAction.REDIRECT
        assert decision.target == "/dashboard/officer"

    def test_dashboard_index_signed_out(self, registry):
        assert registry.resolve("/dashboard", SIGNED_OUT).target == "/login"

    def test_farmer_page_for_buyer(self, registry):
        decision = registry.resolve("/dashboard/farmer/products", _signed_in(Role.BUYER))
        assert decision.target == "/dashboard"

    def test_parameterised_route(self, registry):
        decision = registry.resolve("/dashboard/product/prod-1", _signed_in(Role.BUYER))
        assert decision.action is RouteAction.RENDER

    def test_public_page_when_signed_in(self, registry):
        assert registry.resolve("/login", _signed_in(Role.BUYER)).target == "/dashboard"

    def test_unknown_path_goes_home(self, registry):
        decision = registry.resolve("/no/such/page", SIGNED_OUT)
        assert decision.action is RouteAction.REDIRECT
        assert decision.target == "/"

    def test_unknown_path_waits_while_loading(self, registry):
        decision = registry.resolve("/no/such/page", LOADING)
        assert decision.state is RouteState.LOADING
        assert decision.action is RouteAction.PLACEHOLDER
        assert decision.target is None

    def test_query_string_ignored(self, registry):
        decision = registry.resolve("/dashboard/orders?page=2", _signed_in(Role.BUYER))
        assert decision.action is RouteAction.RENDER

    def test_routes_for_role(self, registry):
        officer_paths = [entry.path for entry in registry.get_routes_for_role(Role.OFFICER)]
        assert "/dashboard/officer/farmers" in officer_paths
        assert "/dashboard/farmer" not in officer_paths
        assert "/login" not in officer_paths
        assert "/dashboard" not in officer_paths
        assert "/dashboard/marketplace" in officer_paths

    def test_get_route(self, registry):
        assert registry.get_route("/dashboard/farmer").required_roles == frozenset({Role.FARMER})
        with pytest.raises(KeyError):
            registry.get_route("/nowhere")

    def test_register_overwrites(self, logger):
        registry = RouteRegistry(logger)
        registry.register("/dashboard/x", "First")
        registry.register("/dashboard/x", "Second")
        assert registry.get_route("/dashboard/x").display_name == "Second"
