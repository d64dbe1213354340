"""Shared seeding helpers for the async service tests."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select

from rbac_core.core.database import session_scope
from rbac_core.models.audit_log import AuditLog
from rbac_core.models.permission import Permission
from rbac_core.models.role import Role
from rbac_core.models.role_permission import RolePermission
from rbac_core.schemas.permission import PermissionCreate
from rbac_core.schemas.role import RoleCreate
from rbac_core.services.admin import RoleAdminService

ADMIN_ACTOR = "8d6b7c9e-8a55-4b6f-9d1c-2f0c6b1d9a11"


async def seed_baseline() -> None:
    async with session_scope() as session:
        await RoleAdminService(session).ensure_baseline_permissions()


async def create_role(name: str, permissions: Iterable[str] = ()) -> Role:
    async with session_scope() as session:
        return await RoleAdminService(session).create_role(
            RoleCreate(name=name, display_name=name.replace("_", " ").title(), permissions=list(permissions)),
            actor=ADMIN_ACTOR,
        )


async def create_permission(resource: str, action: str, name: Optional[str] = None) -> Permission:
    async with session_scope() as session:
        return await RoleAdminService(session).create_permission(
            PermissionCreate(resource=resource, action=action, name=name),
            actor=ADMIN_ACTOR,
        )


async def create_system_role(name: str, permissions: Iterable[str] = ()) -> Role:
    """Insert a system role with an arbitrary grant set, bypassing startup seeding."""

    async with session_scope() as session:
        role = Role(name=name, display_name=name.title(), is_system=True)
        session.add(role)
        await session.flush()
        for permission_name in permissions:
            permission_id = await session.scalar(select(Permission.id).where(Permission.name == permission_name))
            session.add(RolePermission(role_id=role.id, permission_id=permission_id))
    return role


async def assign(user_id: UUID, role: Role, expires_at: Optional[datetime] = None) -> None:
    async with session_scope() as session:
        await RoleAdminService(session).assign_role_to_user(user_id, role.id, actor=ADMIN_ACTOR, expires_at=expires_at)


async def revoke(user_id: UUID, role: Role) -> None:
    async with session_scope() as session:
        await RoleAdminService(session).revoke_role_from_user(user_id, role.id, actor=ADMIN_ACTOR)


async def audit_count() -> int:
    async with session_scope() as session:
        return int(await session.scalar(select(func.count()).select_from(AuditLog)))


async def permission_id(name: str) -> UUID:
    async with session_scope() as session:
        return await session.scalar(select(Permission.id).where(Permission.name == name))
