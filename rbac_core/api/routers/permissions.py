"""Permission and module management endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from rbac_core.api.dependencies import get_actor, get_admin_service
from rbac_core.schemas.permission import (
    GroupedPermissionsResponse,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
)
from rbac_core.services.admin import RoleAdminService

router = APIRouter()
modules_router = APIRouter()


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    payload: PermissionCreate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> PermissionResponse:
    permission = await service.create_permission(payload, actor=actor)
    return PermissionResponse.model_validate(permission)


@router.get("", response_model=List[PermissionResponse])
async def list_permissions(service: RoleAdminService = Depends(get_admin_service)) -> List[PermissionResponse]:
    return [PermissionResponse.model_validate(permission) for permission in await service.list_permissions()]


@router.get("/grouped", response_model=GroupedPermissionsResponse)
async def list_permissions_grouped(
    service: RoleAdminService = Depends(get_admin_service),
) -> GroupedPermissionsResponse:
    groups = await service.list_permissions_grouped()
    return GroupedPermissionsResponse(
        groups={
            module: [PermissionResponse.model_validate(permission) for permission in permissions]
            for module, permissions in groups.items()
        }
    )


@router.patch("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: UUID,
    payload: PermissionUpdate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> PermissionResponse:
    permission = await service.update_permission(permission_id, payload, actor=actor)
    return PermissionResponse.model_validate(permission)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: UUID,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> Response:
    await service.delete_permission(permission_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@modules_router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def create_module(
    payload: ModuleCreate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> ModuleResponse:
    module = await service.create_module(payload, actor=actor)
    return ModuleResponse.model_validate(module)


@modules_router.get("", response_model=List[ModuleResponse])
async def list_modules(service: RoleAdminService = Depends(get_admin_service)) -> List[ModuleResponse]:
    return [ModuleResponse.model_validate(module) for module in await service.list_modules()]


@modules_router.patch("/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: UUID,
    payload: ModuleUpdate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> ModuleResponse:
    module = await service.update_module(module_id, payload, actor=actor)
    return ModuleResponse.model_validate(module)


@modules_router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(
    module_id: UUID,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> Response:
    await service.delete_module(module_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
