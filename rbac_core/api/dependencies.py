"""Dependency injection helpers for FastAPI routes."""

from __future__ import annotations

from typing import AsyncIterator, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.core.database import get_session
from rbac_core.services.admin import RoleAdminService
from rbac_core.services.audit import AuditService
from rbac_core.services.invalidation import get_invalidation_signal
from rbac_core.services.legacy import LegacyPermissionAdapter
from rbac_core.services.menu import MenuService
from rbac_core.services.resolver import PermissionResolver, get_permission_resolver


async def get_db_session() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_actor(x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-Id")) -> Optional[str]:
    """Identity of the administrator issuing a command; absent means `system`."""

    return x_actor_id or None


def get_resolver() -> PermissionResolver:
    return get_permission_resolver()


def get_admin_service(session: AsyncSession = Depends(get_db_session)) -> RoleAdminService:
    return RoleAdminService(session, signal=get_invalidation_signal())


def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    return AuditService(session)


def get_menu_service(
    session: AsyncSession = Depends(get_db_session),
    resolver: PermissionResolver = Depends(get_resolver),
) -> MenuService:
    return MenuService(session, resolver=resolver)


def get_legacy_adapter(resolver: PermissionResolver = Depends(get_resolver)) -> LegacyPermissionAdapter:
    return LegacyPermissionAdapter(resolver)
