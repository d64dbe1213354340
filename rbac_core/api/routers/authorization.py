"""Permission check endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from rbac_core.api.dependencies import get_legacy_adapter, get_resolver
from rbac_core.schemas.authorization import (
    ActionCheckRequest,
    AuthorizationResponse,
    EffectiveAccessResponse,
    EffectivePermissionResponse,
    EffectiveRoleResponse,
    LegacyPermissionSummary,
    PermissionCheckRequest,
)
from rbac_core.services.legacy import LegacyPermissionAdapter
from rbac_core.services.resolver import PermissionResolver

router = APIRouter()


@router.post("/authorize", response_model=AuthorizationResponse)
async def authorize(
    payload: PermissionCheckRequest,
    resolver: PermissionResolver = Depends(get_resolver),
) -> AuthorizationResponse:
    if payload.mode == "any":
        authorized = await resolver.has_any_permission(payload.user_id, payload.permissions)
    else:
        authorized = await resolver.has_all_permissions(payload.user_id, payload.permissions)
    return AuthorizationResponse(authorized=authorized)


@router.post("/authorize/action", response_model=AuthorizationResponse)
async def authorize_action(
    payload: ActionCheckRequest,
    resolver: PermissionResolver = Depends(get_resolver),
) -> AuthorizationResponse:
    authorized = await resolver.can_perform_action(payload.user_id, payload.resource, payload.action)
    return AuthorizationResponse(authorized=authorized)


@router.get("/users/{user_id}/access", response_model=EffectiveAccessResponse)
async def get_effective_access(
    user_id: UUID,
    resolver: PermissionResolver = Depends(get_resolver),
) -> EffectiveAccessResponse:
    access = await resolver.get_effective_access(user_id)
    return EffectiveAccessResponse(
        user_id=user_id,
        roles=[
            EffectiveRoleResponse(id=role.id, name=role.name, display_name=role.display_name, is_system=role.is_system)
            for role in sorted(access.roles, key=lambda role: role.name)
        ],
        permissions=[
            EffectivePermissionResponse(
                id=permission.id,
                name=permission.name,
                resource=permission.resource,
                action=permission.action,
            )
            for permission in sorted(access.permissions, key=lambda permission: permission.name)
        ],
    )


@router.get("/legacy/permissions", response_model=LegacyPermissionSummary)
async def legacy_permissions(
    user_id: Optional[UUID] = Query(default=None),
    adapter: LegacyPermissionAdapter = Depends(get_legacy_adapter),
) -> LegacyPermissionSummary:
    return await adapter.summary(user_id)
