"""Role management endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from rbac_core.api.dependencies import get_actor, get_admin_service
from rbac_core.models.role import Role
from rbac_core.schemas.role import RoleCreate, RolePermissionChange, RoleResponse, RoleUpdate
from rbac_core.services.admin import RoleAdminService

router = APIRouter()


@router.post(
    "",
    response_model=RoleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_role(
    payload: RoleCreate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> RoleResponse:
    role = await service.create_role(payload, actor=actor)
    _, permissions = await service.get_role(role.id)
    return _to_role_response(role, permissions)


@router.get(
    "",
    response_model=List[RoleResponse],
)
async def list_roles(
    service: RoleAdminService = Depends(get_admin_service),
) -> List[RoleResponse]:
    roles = await service.list_roles()
    names = await service.role_permission_names(role.id for role in roles)
    return [_to_role_response(role, names[role.id]) for role in roles]


@router.get(
    "/{role_id}",
    response_model=RoleResponse,
)
async def get_role(
    role_id: UUID,
    service: RoleAdminService = Depends(get_admin_service),
) -> RoleResponse:
    role, permissions = await service.get_role(role_id)
    return _to_role_response(role, permissions)


@router.patch(
    "/{role_id}",
    response_model=RoleResponse,
)
async def update_role(
    role_id: UUID,
    payload: RoleUpdate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> RoleResponse:
    await service.update_role(role_id, payload, actor=actor)
    role, permissions = await service.get_role(role_id)
    return _to_role_response(role, permissions)


@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_role(
    role_id: UUID,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> Response:
    await service.delete_role(role_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{role_id}/permissions",
    status_code=status.HTTP_200_OK,
)
async def assign_permission(
    role_id: UUID,
    payload: RolePermissionChange,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> dict[str, object]:
    changed = await service.assign_permission_to_role(role_id, payload.permission_id, actor=actor)
    return {"status": "assigned", "changed": changed}


@router.delete(
    "/{role_id}/permissions/{permission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_permission(
    role_id: UUID,
    permission_id: UUID,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> Response:
    await service.remove_permission_from_role(role_id, permission_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _to_role_response(role: Role, permissions: List[str]) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        sort_order=role.sort_order,
        is_system=role.is_system,
        permissions=permissions,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )
