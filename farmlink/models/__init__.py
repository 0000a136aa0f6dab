from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for convenient imports:
    from farmlink.models import User, Role, SessionSnapshot
"""

from farmlink.models.enums import (
    FixtureMissPolicy,
    Role,
    RouteAction,
    RouteState,
    TokenStatus,
)
from farmlink.models.user import User
from farmlink.models.auth_models import (
    Acknowledgement,
    AuthResponse,
    PaginatedResponse,
    SessionSnapshot,
    UploadResult,
)

__all__ = [
    "FixtureMissPolicy",
    "Role",
    "RouteAction",
    "RouteState",
    "TokenStatus",
    "User",
    "Acknowledgement",
    "AuthResponse",
    "PaginatedResponse",
    "SessionSnapshot",
    "UploadResult",
]
