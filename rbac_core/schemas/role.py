"""Role schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RoleBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=120, pattern=r"^[a-z0-9_\-]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=512)
    sort_order: int = Field(default=0)


class RoleCreate(RoleBase):
    permissions: List[str] = Field(default_factory=list, description="Permission names granted on creation.")


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120, pattern=r"^[a-z0-9_\-]+$")
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=512)
    sort_order: Optional[int] = None


class RoleResponse(RoleBase):
    id: UUID
    is_system: bool
    permissions: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RolePermissionChange(BaseModel):
    permission_id: UUID
