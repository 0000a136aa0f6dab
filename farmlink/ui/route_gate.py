"""Route Gate.

Pure decision functions that turn a ``SessionSnapshot`` into a
navigation outcome.  Views never inspect the session themselves; they
ask the gate and obey the returned ``RouteDecision``.

State machine::

    is_loading                         -> LOADING                    (placeholder)
    not is_authenticated               -> UNAUTHENTICATED            (redirect /login)
    current_role not in required_roles -> AUTHENTICATED_UNAUTHORIZED (redirect /dashboard)
    otherwise                          -> AUTHENTICATED_AUTHORIZED   (render)

An unauthorized role is silently downgraded to the dashboard root; the
gate never produces an error page.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Optional, assert_never

from farmlink.models.auth_models import SessionSnapshot
from farmlink.models.enums import Role, RouteAction, RouteState
from farmlink.ui.paths import (
    DASHBOARD_PATH,
    FARMER_DASHBOARD_PATH,
    LOGIN_PATH,
    MARKETPLACE_PATH,
    OFFICER_DASHBOARD_PATH,
)


class RouteDecision(NamedTuple):
    """Outcome of gating one route.

    ``target`` is set only when ``action`` is ``REDIRECT``.
    """

    state: RouteState
    action: RouteAction
    target: Optional[str] = None


def evaluate(
    snapshot: SessionSnapshot,
    required_roles: Iterable[Role] = (),
) -> RouteState:
    """Transition function of the route-gating state machine."""
    if snapshot.is_loading:
        return RouteState.LOADING
    if not snapshot.is_authenticated:
        return RouteState.UNAUTHENTICATED
    required = frozenset(required_roles)
    if required and snapshot.current_role not in required:
        return RouteState.AUTHENTICATED_UNAUTHORIZED
    return RouteState.AUTHENTICATED_AUTHORIZED


def protected_route(
    snapshot: SessionSnapshot,
    required_roles: Iterable[Role] = (),
) -> RouteDecision:
    """Gate a page that needs a signed-in user (and optionally a role)."""
    state = evaluate(snapshot, required_roles)
    if state is RouteState.LOADING:
        return RouteDecision(state, RouteAction.PLACEHOLDER)
    if state is RouteState.UNAUTHENTICATED:
        return RouteDecision(state, RouteAction.REDIRECT, LOGIN_PATH)
    if state is RouteState.AUTHENTICATED_UNAUTHORIZED:
        return RouteDecision(state, RouteAction.REDIRECT, DASHBOARD_PATH)
    if state is RouteState.AUTHENTICATED_AUTHORIZED:
        return RouteDecision(state, RouteAction.RENDER)
    assert_never(state)


def public_route(snapshot: SessionSnapshot) -> RouteDecision:
    """Gate an auth page (landing, login, register).

    Signed-in users are sent to the dashboard instead.
    """
    state = evaluate(snapshot)
    if state is RouteState.LOADING:
        return RouteDecision(state, RouteAction.PLACEHOLDER)
    if state is RouteState.UNAUTHENTICATED:
        return RouteDecision(state, RouteAction.RENDER)
    return RouteDecision(state, RouteAction.REDIRECT, DASHBOARD_PATH)


def dashboard_redirect(role: Optional[Role | str]) -> str:
    """Landing page of the dashboard for *role*.

    Buyers, sessions without an active role and unrecognised role names
    land on the marketplace.
    """
    if role is None:
        return MARKETPLACE_PATH
    try:
        role = Role(role)
    except ValueError:
        return MARKETPLACE_PATH
    if role is Role.FARMER:
        return FARMER_DASHBOARD_PATH
    if role is Role.OFFICER:
        return OFFICER_DASHBOARD_PATH
    if role is Role.BUYER:
        return MARKETPLACE_PATH
    assert_never(role)
