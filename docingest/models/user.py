"""
User model and roles.

Identity comes from a validated bearer token; the record is provisioned on the
first authenticated request. Roles drive every access decision.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from docingest.models.common import PageParams


class UserRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"  # may create documents and manage their own
    VIEWER = "viewer"  # read-only on their own documents


class User(BaseModel):
    """
    Authenticated caller. Treated as immutable for the duration of a request.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "3f0c2f7e-0d5b-4d0e-9a53-8f2b1c1e9a10",
                "email": "editor@example.com",
                "role": "editor",
                "active": True,
            }
        },
    )

    id: str  # token "sub" claim
    email: Optional[str] = None
    role: UserRole = UserRole.VIEWER
    active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserPatch(BaseModel):
    """Admin-only changes to an account. Identity and email come from the token."""

    model_config = ConfigDict(extra="forbid")

    role: Optional[UserRole] = None
    active: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return {name: value for name, value in self.model_dump().items() if value is not None}


class UserQuery(PageParams):
    role: Optional[UserRole] = None
    active: Optional[bool] = None
    search: Optional[str] = None  # substring of email
    sort_by: Literal["created_at", "email", "role"] = "created_at"
