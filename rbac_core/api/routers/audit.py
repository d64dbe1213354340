"""Audit trail endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from rbac_core.api.dependencies import get_audit_service
from rbac_core.models.audit_log import AuditSeverity
from rbac_core.schemas.audit import AuditLogFilters, AuditLogPage, Pagination
from rbac_core.services.audit import AuditService

router = APIRouter()


@router.get("", response_model=AuditLogPage)
async def list_audit_log(
    category: Optional[str] = Query(default=None),
    severity: Optional[AuditSeverity] = Query(default=None),
    action: Optional[str] = Query(default=None),
    actor: Optional[str] = Query(default=None),
    target_type: Optional[str] = Query(default=None),
    target_id: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    service: AuditService = Depends(get_audit_service),
) -> AuditLogPage:
    try:
        filters = AuditLogFilters(
            category=category,
            severity=severity,
            action=action,
            actor=actor,
            target_type=target_type,
            target_id=target_id,
            start=start,
            end=end,
        )
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc
    return await service.query(filters, Pagination(limit=limit, offset=offset))
