"""Store adapter: the only place that turns SQL rows into records.

Connectivity failures surface here as `StoreUnavailableError`; the layers above
decide whether to propagate (commands, reads) or deny (permission checks).
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterator, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rbac_core.core.database import get_session_factory
from rbac_core.models.menu_item import MenuItem
from rbac_core.models.permission import Permission
from rbac_core.models.role import Role
from rbac_core.models.role_permission import RolePermission
from rbac_core.models.user_role import UserRole
from rbac_core.services.errors import StoreUnavailableError
from rbac_core.services.records import EffectiveAccess, MenuItemRecord, PermissionRecord, RoleGrant, RoleRecord

LOGGER = logging.getLogger("rbac_core.services.store")

_CONNECTIVITY_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
    OSError,
)


@contextmanager
def translate_store_errors(operation: str, *, read_only: bool = False) -> Iterator[None]:
    """Re-raise connectivity failures as `StoreUnavailableError`.

    With `read_only`, any database error counts: a query that cannot run (missing
    grants, broken schema) leaves the store just as unusable to the reader.
    """

    try:
        yield
    except _CONNECTIVITY_ERRORS as exc:
        LOGGER.warning("rbac_store_unavailable", extra={"operation": operation, "error": str(exc)})
        raise StoreUnavailableError(f"RBAC store unavailable during {operation}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            LOGGER.warning("rbac_store_connection_lost", extra={"operation": operation, "error": str(exc)})
            raise StoreUnavailableError(f"RBAC store connection lost during {operation}") from exc
        if not read_only:
            raise
        LOGGER.warning("rbac_store_query_failed", extra={"operation": operation, "error": str(exc)})
        raise StoreUnavailableError(f"RBAC store query failed during {operation}") from exc
    except SQLAlchemyError as exc:
        if not read_only:
            raise
        LOGGER.warning("rbac_store_query_failed", extra={"operation": operation, "error": str(exc)})
        raise StoreUnavailableError(f"RBAC store query failed during {operation}") from exc


@asynccontextmanager
async def unit_of_work(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Commit on success, roll back on any error, translating connectivity failures."""

    try:
        with translate_store_errors(operation):
            yield
            await session.commit()
    except Exception:
        await session.rollback()
        raise


def effective_assignment_clause(now: datetime):
    """SQL predicate selecting assignments that currently grant their role."""

    return (UserRole.is_active.is_(True)) & or_(UserRole.expires_at.is_(None), UserRole.expires_at > now)


async def select_role_grants(session: AsyncSession, user_id: UUID, now: datetime) -> List[RoleGrant]:
    stmt = (
        select(UserRole.expires_at, Role)
        .join(Role, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .where(effective_assignment_clause(now))
    )
    rows = (await session.execute(stmt)).all()
    return [RoleGrant(role=RoleRecord.from_model(role), expires_at=expires_at) for expires_at, role in rows]


async def select_role_permissions(session: AsyncSession, role_ids: Sequence[UUID]) -> List[PermissionRecord]:
    if not role_ids:
        return []
    stmt = (
        select(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id.in_(list(role_ids)))
        .distinct()
    )
    return [PermissionRecord.from_model(permission) for permission in (await session.scalars(stmt)).all()]


class RbacStore:
    """Read side of the relational store used by the resolver and menu builder."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self._session_factory = session_factory

    def _open(self) -> AsyncSession:
        factory = self._session_factory or get_session_factory()
        return factory()

    async def load_access(self, user_id: UUID, *, now: Optional[datetime] = None) -> EffectiveAccess:
        """Join effective assignments to roles, then roles to permissions."""

        now = now or datetime.now(timezone.utc)
        with translate_store_errors("load_access", read_only=True):
            async with self._open() as session:
                grants = await select_role_grants(session, user_id, now)
                permissions = await select_role_permissions(session, [grant.role.id for grant in grants])
        return EffectiveAccess.from_grants(grants, permissions)

    async def load_menu_items(self) -> List[MenuItemRecord]:
        with translate_store_errors("load_menu_items", read_only=True):
            async with self._open() as session:
                items = (await session.scalars(select(MenuItem).where(MenuItem.is_active.is_(True)))).all()
        return [MenuItemRecord.from_model(item) for item in items]
