"""Audit log entries for RBAC mutations."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, Index, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column

from rbac_core.models.base import Base
from rbac_core.models.types import GUID, JSONType, UTCDateTime


class AuditAction(str, Enum):
    ASSIGN_ROLE = "assign_role"
    REVOKE_ROLE = "revoke_role"
    CREATE_ROLE = "create_role"
    UPDATE_ROLE = "update_role"
    DELETE_ROLE = "delete_role"
    CREATE_PERMISSION = "create_permission"
    UPDATE_PERMISSION = "update_permission"
    DELETE_PERMISSION = "delete_permission"
    ASSIGN_PERMISSION = "assign_permission"
    REVOKE_PERMISSION = "revoke_permission"
    CREATE_MODULE = "create_module"
    UPDATE_MODULE = "update_module"
    DELETE_MODULE = "delete_module"
    CREATE_MENU_ITEM = "create_menu_item"
    UPDATE_MENU_ITEM = "update_menu_item"
    DELETE_MENU_ITEM = "delete_menu_item"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditLog(Base):
    """Append-only, hash-chained record of one RBAC mutation."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_actor", "actor"),
        Index("ix_audit_logs_target", "target_type", "target_id"),
        Index("ix_audit_logs_action", "action"),
        Index("ix_audit_logs_category", "category"),
        Index("ix_audit_logs_severity", "severity"),
        Index("ix_audit_logs_occurred_at", "occurred_at"),
        Index("ix_audit_logs_sequence", "sequence", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    sequence: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), nullable=False)
    previous_hash: Mapped[str] = mapped_column(String(length=64), nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(length=64), nullable=False)
    hash_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    actor: Mapped[str] = mapped_column(String(length=64), nullable=False)
    action: Mapped[str] = mapped_column(String(length=64), nullable=False)
    target_type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    target_id: Mapped[str] = mapped_column(String(length=128), nullable=False)
    category: Mapped[str] = mapped_column(String(length=50), nullable=False, default="rbac")
    severity: Mapped[str] = mapped_column(String(length=20), nullable=False, default=AuditSeverity.INFO.value)
    correlation_id: Mapped[str | None] = mapped_column(String(length=120), nullable=True)
    detail: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)


class ImmutableAuditEntryError(RuntimeError):
    """Raised when code attempts to modify or delete a persisted audit entry."""


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target: AuditLog) -> None:  # noqa: ANN001
    raise ImmutableAuditEntryError(f"Audit entry {target.sequence} is append-only")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target: AuditLog) -> None:  # noqa: ANN001
    raise ImmutableAuditEntryError(f"Audit entry {target.sequence} cannot be deleted")
