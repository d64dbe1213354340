"""Navigation menu schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MenuItemCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)
    href: str = Field(..., min_length=1, max_length=512)
    parent_id: Optional[UUID] = None
    icon: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = Field(default=None, max_length=512)
    permission_id: Optional[UUID] = None
    sort_order: Optional[int] = Field(default=None, description="Defaults to after the last sibling.")


class MenuItemUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=255)
    href: Optional[str] = Field(default=None, min_length=1, max_length=512)
    parent_id: Optional[UUID] = None
    icon: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = Field(default=None, max_length=512)
    permission_id: Optional[UUID] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class MenuItemResponse(BaseModel):
    id: UUID
    parent_id: Optional[UUID]
    label: str
    href: str
    icon: Optional[str]
    description: Optional[str]
    permission_id: Optional[UUID]
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MenuNodeResponse(BaseModel):
    id: UUID
    label: str
    href: str
    icon: Optional[str] = None
    description: Optional[str] = None
    sort_order: int
    children: List["MenuNodeResponse"] = Field(default_factory=list)


MenuNodeResponse.model_rebuild()
