"""
Authentication Pipeline Models.

Pydantic models for the request/response contracts between the
``AuthService``, the ``ApiClient`` and the ``SessionContext``.

Every auth operation returns a structured, inspectable model rather
than a raw ``dict`` so callers never poke at backend JSON directly.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from farmlink.models.enums import Role
from farmlink.models.user import User


# ---------------------------------------------------------------------------
# Auth responses
# ---------------------------------------------------------------------------

class AuthResponse(BaseModel):
    """Body of ``POST /auth/login`` and ``POST /auth/register``.

    Attributes
    ----------
    token:
        Bearer token carrying an ``exp`` claim.
    user:
        The authoritative identity returned by the backend.
    """

    token: str
    user: User

    model_config = {"from_attributes": True}


class Acknowledgement(BaseModel):
    """Generic ``{success, message}`` reply used by fire-and-forget calls.

    ``token`` is set only when the backend reissues the bearer token
    (e.g. after a role switch).
    """

    success: bool = True
    message: Optional[str] = None
    token: Optional[str] = None

    model_config = {"extra": "allow"}


class UploadResult(BaseModel):
    """Body returned by multipart upload endpoints."""

    success: bool = True
    image_url: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    file_id: Optional[str] = None

    model_config = {"extra": "allow"}


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

class PaginatedResponse(BaseModel):
    """Collection wrapper ``{items, total, page, limit}``."""

    items: list[dict[str, Any]]
    total: int
    page: int = 1
    limit: int = 20


# ---------------------------------------------------------------------------
# Session snapshot
# ---------------------------------------------------------------------------

class SessionSnapshot(BaseModel):
    """Immutable view of the session consumed by the UI and route gate.

    Attributes
    ----------
    user:
        Current identity, or ``None`` when signed out.
    current_role:
        Active role; always one of ``user.roles`` while authenticated.
    is_authenticated:
        ``True`` iff a user is stored and the token is valid.
    is_loading:
        ``True`` only during bootstrap and in-flight login/register.
    """

    user: Optional[User] = None
    current_role: Optional[Role] = None
    is_authenticated: bool = False
    is_loading: bool = True

    model_config = {"frozen": True}
