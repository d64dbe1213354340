"""Permission modules group permissions for presentation."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rbac_core.models.base import Base, TimestampMixin
from rbac_core.models.types import GUID


class PermissionModule(TimestampMixin, Base):
    """UI grouping for permissions. Carries no authorization meaning."""

    __tablename__ = "permission_modules"
    __table_args__ = (UniqueConstraint("name", name="uq_permission_modules_name"),)

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(length=120), nullable=False)
    display_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(length=512), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    color: Mapped[str | None] = mapped_column(String(length=32), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
