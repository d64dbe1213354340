"""Navigation menu items guarded by permissions."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rbac_core.models.base import Base, TimestampMixin
from rbac_core.models.types import GUID


class MenuItem(TimestampMixin, Base):
    """One node of the navigation forest."""

    __tablename__ = "menu_items"
    __table_args__ = (
        UniqueConstraint("parent_id", "href", name="uq_menu_items_parent_href"),
        Index("ix_menu_items_parent", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("menu_items.id", ondelete="SET NULL"),
        nullable=True,
    )
    label: Mapped[str] = mapped_column(String(length=255), nullable=False)
    href: Mapped[str] = mapped_column(String(length=512), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    description: Mapped[str | None] = mapped_column(String(length=512), nullable=True)
    permission_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("permissions.id", ondelete="SET NULL"),
        nullable=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
