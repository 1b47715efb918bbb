"""
Pydantic schemas for users, tokens and role management.
"""
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from edustream.schemas.common import Pagination

Role = Literal["student", "instructor", "admin"]


class Principal(BaseModel):
    """Identity resolved from a bearer token."""
    user_id: str
    email: str = ""
    role: Role
    name: str = ""
    avatar: Optional[str] = None

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


class ProviderProfile(BaseModel):
    """Profile returned by the external identity provider."""
    provider_id: str
    email: str
    name: str = ""
    avatar: Optional[str] = None


class UserOut(BaseModel):
    """User as returned by /me and admin listings (no provider id)."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str
    avatar: Optional[str] = None
    role: Role
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None


class UserList(BaseModel):
    users: List[UserOut]
    pagination: Pagination


class TokenResponse(BaseModel):
    token: str


class AdminGrantRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Email of the user to promote")


class RoleUpdateRequest(BaseModel):
    role: Role
