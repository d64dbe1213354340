"""User role assignment endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from rbac_core.api.dependencies import get_actor, get_admin_service
from rbac_core.schemas.assignment import RoleAssignmentCreate, RoleAssignmentResponse, RoleAssignmentRevoke
from rbac_core.services.admin import RoleAdminService

router = APIRouter()


@router.post(
    "",
    response_model=RoleAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_role(
    payload: RoleAssignmentCreate,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> RoleAssignmentResponse:
    assignment = await service.assign_role_to_user(
        payload.user_id,
        payload.role_id,
        actor=actor,
        expires_at=payload.expires_at,
    )
    return RoleAssignmentResponse.model_validate(assignment)


@router.get(
    "",
    response_model=List[RoleAssignmentResponse],
)
async def list_assignments(
    user_id: UUID = Query(...),
    include_inactive: bool = Query(default=False),
    service: RoleAdminService = Depends(get_admin_service),
) -> List[RoleAssignmentResponse]:
    assignments = await service.list_user_assignments(user_id, include_inactive=include_inactive)
    return [RoleAssignmentResponse.model_validate(assignment) for assignment in assignments]


@router.post(
    "/revoke",
    response_model=RoleAssignmentResponse,
)
async def revoke_role(
    payload: RoleAssignmentRevoke,
    service: RoleAdminService = Depends(get_admin_service),
    actor: Optional[str] = Depends(get_actor),
) -> RoleAssignmentResponse:
    assignment = await service.revoke_role_from_user(payload.user_id, payload.role_id, actor=actor)
    return RoleAssignmentResponse.model_validate(assignment)
