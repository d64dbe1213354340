"""Schemas for querying the RBAC audit trail."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rbac_core.models.audit_log import AuditSeverity


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AuditLogFilters(BaseModel):
    category: Optional[str] = Field(default=None, max_length=50)
    severity: Optional[AuditSeverity] = None
    action: Optional[str] = Field(default=None, max_length=64)
    actor: Optional[str] = Field(default=None, max_length=64)
    target_type: Optional[str] = Field(default=None, max_length=64)
    target_id: Optional[str] = Field(default=None, max_length=128)
    start: Optional[datetime] = Field(default=None, description="Inclusive lower bound on occurred_at (UTC).")
    end: Optional[datetime] = Field(default=None, description="Inclusive upper bound on occurred_at (UTC).")

    @model_validator(mode="after")
    def _normalize_range(self) -> "AuditLogFilters":
        self.start = _as_utc(self.start)
        self.end = _as_utc(self.end)
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class Pagination(BaseModel):
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)


class AuditLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sequence: int
    occurred_at: datetime
    actor: str
    action: str
    target_type: str
    target_id: str
    category: str
    severity: str
    correlation_id: Optional[str]
    detail: Dict[str, Any]
    entry_hash: str


class AuditLogPage(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[AuditLogEntryResponse]
