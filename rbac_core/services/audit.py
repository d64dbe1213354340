"""Audit logging service."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.core.config import get_settings
from rbac_core.models.audit_log import AuditAction, AuditLog, AuditSeverity
from rbac_core.schemas.audit import AuditLogEntryResponse, AuditLogFilters, AuditLogPage, Pagination
from rbac_core.services.errors import AuditWriteError
from rbac_core.services.store import translate_store_errors

HASH_VERSION = 1
GENESIS_HASH = "0" * 64
SYSTEM_ACTOR = "system"

_CATEGORY_BY_ACTION = {
    AuditAction.ASSIGN_ROLE: "role_assignment",
    AuditAction.REVOKE_ROLE: "role_assignment",
    AuditAction.CREATE_ROLE: "role",
    AuditAction.UPDATE_ROLE: "role",
    AuditAction.DELETE_ROLE: "role",
    AuditAction.CREATE_PERMISSION: "permission",
    AuditAction.UPDATE_PERMISSION: "permission",
    AuditAction.DELETE_PERMISSION: "permission",
    AuditAction.ASSIGN_PERMISSION: "role_permission",
    AuditAction.REVOKE_PERMISSION: "role_permission",
    AuditAction.CREATE_MODULE: "module",
    AuditAction.UPDATE_MODULE: "module",
    AuditAction.DELETE_MODULE: "module",
    AuditAction.CREATE_MENU_ITEM: "menu",
    AuditAction.UPDATE_MENU_ITEM: "menu",
    AuditAction.DELETE_MENU_ITEM: "menu",
}

_WARNING_ACTIONS = frozenset(
    {
        AuditAction.REVOKE_ROLE,
        AuditAction.DELETE_ROLE,
        AuditAction.DELETE_PERMISSION,
        AuditAction.REVOKE_PERMISSION,
        AuditAction.DELETE_MODULE,
        AuditAction.DELETE_MENU_ITEM,
    }
)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def canonicalize_audit_entry_payload(
    *,
    sequence: int,
    hash_version: int,
    actor: str,
    action: str,
    target_type: str,
    target_id: str,
    category: str,
    severity: str,
    correlation_id: Optional[str],
    detail: Dict[str, Any],
    occurred_at: datetime,
    previous_hash: str,
) -> str:
    """Serialize the hashed fields of an entry deterministically."""

    return json.dumps(
        {
            "sequence": sequence,
            "hash_version": hash_version,
            "actor": actor,
            "action": action,
            "target_type": target_type,
            "target_id": target_id,
            "category": category,
            "severity": severity,
            "correlation_id": correlation_id,
            "detail": detail,
            "occurred_at": _iso(occurred_at),
            "previous_hash": previous_hash,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def compute_audit_entry_hash(previous_hash: str, canonical_payload: str) -> str:
    return hashlib.sha256((previous_hash + canonical_payload).encode("utf-8")).hexdigest()


def default_category(action: AuditAction) -> str:
    return _CATEGORY_BY_ACTION.get(action, "rbac")


def default_severity(action: AuditAction) -> AuditSeverity:
    return AuditSeverity.WARNING if action in _WARNING_ACTIONS else AuditSeverity.INFO


class AuditService:
    """Persists audit entries inside the caller's transaction and mirrors them to logs.

    The caller owns the commit: an entry recorded here becomes durable together
    with the mutation it describes, or not at all.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = logging.getLogger("rbac_core.audit")

    async def record(
        self,
        actor: Optional[str],
        action: AuditAction,
        target_type: str,
        target_id: Any,
        detail: Optional[Dict[str, Any]] = None,
        *,
        severity: Optional[AuditSeverity] = None,
        category: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> AuditLog:
        """Write an audit log entry anchored into the hash chain."""

        action = AuditAction(action)
        actor_str = str(actor) if actor else SYSTEM_ACTOR
        target_id_str = str(target_id)
        category = category or default_category(action)
        severity_value = AuditSeverity(severity or default_severity(action)).value
        detail = json.loads(json.dumps(detail or {}, default=str))
        occurred_at = datetime.now(timezone.utc)

        try:
            previous_sequence, previous_hash = await self._lock_chain_tip()
            next_sequence = previous_sequence + 1
            canonical_payload = canonicalize_audit_entry_payload(
                sequence=next_sequence,
                hash_version=HASH_VERSION,
                actor=actor_str,
                action=action.value,
                target_type=target_type,
                target_id=target_id_str,
                category=category,
                severity=severity_value,
                correlation_id=correlation_id,
                detail=detail,
                occurred_at=occurred_at,
                previous_hash=previous_hash,
            )
            entry_hash = compute_audit_entry_hash(previous_hash, canonical_payload)

            audit_entry = AuditLog(
                sequence=next_sequence,
                previous_hash=previous_hash,
                entry_hash=entry_hash,
                hash_version=HASH_VERSION,
                occurred_at=occurred_at,
                actor=actor_str,
                action=action.value,
                target_type=target_type,
                target_id=target_id_str,
                category=category,
                severity=severity_value,
                correlation_id=correlation_id,
                detail=detail,
            )
            self._session.add(audit_entry)
            await self._session.flush()
        except SQLAlchemyError as exc:
            self._logger.error(
                "audit_write_failed",
                exc_info=True,
                extra={"action": action.value, "target_type": target_type, "target_id": target_id_str},
            )
            raise AuditWriteError(f"Failed to record audit entry for {action.value}") from exc

        self._logger.info(
            "audit_event",
            extra={
                "sequence": next_sequence,
                "entry_hash": entry_hash,
                "previous_hash": previous_hash,
                "action": action.value,
                "actor": actor_str,
                "target_type": target_type,
                "target_id": target_id_str,
                "category": category,
                "severity": severity_value,
            },
        )
        return audit_entry

    async def query(self, filters: AuditLogFilters, pagination: Pagination) -> AuditLogPage:
        """Return one page of entries, newest first."""

        limit = min(pagination.limit, get_settings().audit_page_size_max)
        conditions = []
        if filters.category:
            conditions.append(AuditLog.category == filters.category)
        if filters.severity:
            conditions.append(AuditLog.severity == AuditSeverity(filters.severity).value)
        if filters.action:
            conditions.append(AuditLog.action == filters.action)
        if filters.actor:
            conditions.append(AuditLog.actor == filters.actor)
        if filters.target_type:
            conditions.append(AuditLog.target_type == filters.target_type)
        if filters.target_id:
            conditions.append(AuditLog.target_id == filters.target_id)
        if filters.start:
            conditions.append(AuditLog.occurred_at >= filters.start)
        if filters.end:
            conditions.append(AuditLog.occurred_at <= filters.end)

        with translate_store_errors("audit_query"):
            total = await self._session.scalar(select(func.count()).select_from(AuditLog).where(*conditions))
            entries = (
                await self._session.scalars(
                    select(AuditLog)
                    .where(*conditions)
                    .order_by(AuditLog.sequence.desc())
                    .limit(limit)
                    .offset(pagination.offset)
                )
            ).all()

        return AuditLogPage(
            total=int(total or 0),
            limit=limit,
            offset=pagination.offset,
            items=[AuditLogEntryResponse.model_validate(entry) for entry in entries],
        )

    async def _lock_chain_tip(self) -> tuple[int, str]:
        stmt = select(AuditLog.sequence, AuditLog.entry_hash).order_by(AuditLog.sequence.desc()).limit(1)
        if self._session.get_bind().dialect.name != "sqlite":
            stmt = stmt.with_for_update(nowait=False)
        result = (await self._session.execute(stmt)).first()
        if result is None:
            return 0, GENESIS_HASH
        sequence, entry_hash = result
        return int(sequence), str(entry_hash)
