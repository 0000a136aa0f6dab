"""Route paths shared by the route gate, the navigator and session teardown."""

from __future__ import annotations

LANDING_PATH: str = "/"
LOGIN_PATH: str = "/login"
REGISTER_PATH: str = "/register"
DASHBOARD_PATH: str = "/dashboard"
MARKETPLACE_PATH: str = "/dashboard/marketplace"
FARMER_DASHBOARD_PATH: str = "/dashboard/farmer"
OFFICER_DASHBOARD_PATH: str = "/dashboard/officer"
