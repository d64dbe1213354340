"""Payload carried by cache invalidation broadcasts."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class InvalidationMessage(BaseModel):
    """Opaque, monotonically increasing token plus a reason for operators."""

    token: int = Field(..., ge=1)
    reason: str = Field(..., max_length=256)
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("issued_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
