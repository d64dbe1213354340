"""User role assignment schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RoleAssignmentCreate(BaseModel):
    user_id: UUID
    role_id: UUID
    expires_at: Optional[datetime] = None


class RoleAssignmentRevoke(BaseModel):
    user_id: UUID
    role_id: UUID


class RoleAssignmentResponse(BaseModel):
    id: UUID
    user_id: UUID
    role_id: UUID
    assigned_by: str
    assigned_at: datetime
    expires_at: Optional[datetime]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
