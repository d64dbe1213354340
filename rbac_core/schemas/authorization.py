"""Authorization check schemas."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PermissionCheckRequest(BaseModel):
    user_id: Optional[UUID] = Field(default=None, description="Omit for anonymous callers.")
    permissions: List[str] = Field(..., min_length=1)
    mode: str = Field(default="all", pattern="^(any|all)$")


class ActionCheckRequest(BaseModel):
    user_id: Optional[UUID] = None
    resource: str = Field(..., min_length=1, max_length=120)
    action: str = Field(..., min_length=1, max_length=120)


class AuthorizationResponse(BaseModel):
    authorized: bool


class EffectiveRoleResponse(BaseModel):
    id: UUID
    name: str
    display_name: str
    is_system: bool


class EffectivePermissionResponse(BaseModel):
    id: UUID
    name: str
    resource: str
    action: str


class EffectiveAccessResponse(BaseModel):
    user_id: UUID
    roles: List[EffectiveRoleResponse]
    permissions: List[EffectivePermissionResponse]


class LegacyPermissionSummary(BaseModel):
    """Flag set consumed by clients built against the single-role API."""

    user_role: Optional[str]
    can_create_case: bool
    can_edit_case: bool
    can_delete_case: bool
    can_manage_users: bool
    can_access_admin: bool
    can_manage_rbac: bool
    can_approve_contributions: bool
