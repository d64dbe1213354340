"""Permission and module schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PermissionCreate(BaseModel):
    resource: str = Field(..., max_length=120)
    action: str = Field(..., max_length=120)
    name: Optional[str] = Field(default=None, max_length=255, description="Defaults to 'resource:action'.")
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1024)
    module_id: Optional[UUID] = None


class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    resource: Optional[str] = Field(default=None, max_length=120)
    action: Optional[str] = Field(default=None, max_length=120)
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1024)
    module_id: Optional[UUID] = None


class PermissionResponse(BaseModel):
    id: UUID
    name: str
    display_name: str
    description: Optional[str]
    resource: str
    action: str
    module_id: Optional[UUID]
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupedPermissionsResponse(BaseModel):
    groups: Dict[str, List[PermissionResponse]]


class ModuleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=120, pattern=r"^[a-z0-9_\-]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=512)
    icon: Optional[str] = Field(default=None, max_length=64)
    color: Optional[str] = Field(default=None, max_length=32)
    sort_order: int = Field(default=0)


class ModuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120, pattern=r"^[a-z0-9_\-]+$")
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=512)
    icon: Optional[str] = Field(default=None, max_length=64)
    color: Optional[str] = Field(default=None, max_length=32)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ModuleResponse(BaseModel):
    id: UUID
    name: str
    display_name: str
    description: Optional[str]
    icon: Optional[str]
    color: Optional[str]
    sort_order: int
    is_active: bool
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
