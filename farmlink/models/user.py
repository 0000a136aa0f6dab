"""
User Model.

Pydantic model for the marketplace identity held by the client.
Role-specific attributes (``farm_name``, ``territory``, ...) are not
modelled individually; they ride along as extra fields so the record
round-trips through storage unchanged.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator

from farmlink.models.enums import Role


class User(BaseModel):
    """Represents a marketplace user account.

    ``roles`` keeps assignment order: the first entry is the default
    active role when none has been chosen explicitly.
    """

    id: str
    full_name: str
    email: Optional[str] = None
    phone_number: str
    roles: list[Role]
    profile_image_url: Optional[str] = None

    model_config = {"from_attributes": True, "extra": "allow"}

    @field_validator("roles")
    @classmethod
    def _roles_non_empty(cls, value: list[Role]) -> list[Role]:
        """Reject an empty role set and drop duplicates, keeping order."""
        if not value:
            raise ValueError("a user must hold at least one role")
        return list(dict.fromkeys(value))

    def has_role(self, role: Role | str) -> bool:
        """``True`` when *role* is one of the user's roles."""
        return role in self.roles
