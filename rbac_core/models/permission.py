"""Permission model representing a `resource:action` capability."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rbac_core.models.base import Base, TimestampMixin
from rbac_core.models.types import GUID


class Permission(TimestampMixin, Base):
    """Atomic permission identified by its `resource:action` name."""

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("name", name="uq_permissions_name"),
        Index("ix_permissions_resource_action", "resource", "action"),
        Index("ix_permissions_module", "module_id"),
        CheckConstraint("length(resource) > 0", name="ck_permissions_resource_not_empty"),
        CheckConstraint("length(action) > 0", name="ck_permissions_action_not_empty"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(length=1024), nullable=True)
    resource: Mapped[str] = mapped_column(String(length=120), nullable=False)
    action: Mapped[str] = mapped_column(String(length=120), nullable=False)
    module_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        ForeignKey("permission_modules.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
