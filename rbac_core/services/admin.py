"""Role, permission, module and assignment administration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import AsyncContextManager, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.core.config import get_settings
from rbac_core.models.audit_log import AuditAction
from rbac_core.models.permission import Permission
from rbac_core.models.permission_module import PermissionModule
from rbac_core.models.permissions_constants import SYSTEM_ROLE_DEFINITIONS, split_permission_name
from rbac_core.models.role import Role
from rbac_core.models.role_permission import RolePermission
from rbac_core.models.user_role import UserRole
from rbac_core.schemas.permission import ModuleCreate, ModuleUpdate, PermissionCreate, PermissionUpdate
from rbac_core.schemas.role import RoleCreate, RoleUpdate
from rbac_core.services.audit import SYSTEM_ACTOR, AuditService
from rbac_core.services.errors import (
    DuplicateNameError,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from rbac_core.services.invalidation import CacheInvalidationSignal, get_invalidation_signal
from rbac_core.services.store import effective_assignment_clause, translate_store_errors, unit_of_work

UNGROUPED_MODULE = "ungrouped"


class RoleAdminService:
    """Coordinates every RBAC mutation.

    Each command validates, mutates, writes its audit entries in the same
    transaction and commits. The invalidation broadcast happens only after a
    successful commit, so readers never recompute against uncommitted data.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        audit_service: Optional[AuditService] = None,
        signal: Optional[CacheInvalidationSignal] = None,
    ) -> None:
        self._session = session
        self._audit = audit_service or AuditService(session)
        self._signal = signal or get_invalidation_signal()
        self._logger = logging.getLogger("rbac_core.services.admin")

    # ------------------------------------------------------------------ roles

    async def create_role(self, payload: RoleCreate, *, actor: Optional[str]) -> Role:
        async with self._unit_of_work("create_role"):
            await self._ensure_unique(Role, payload.name, f"Role '{payload.name}' already exists")
            permissions = await self._permissions_by_name(payload.permissions)

            role = Role(
                name=payload.name,
                display_name=payload.display_name,
                description=payload.description,
                sort_order=payload.sort_order,
                is_system=False,
            )
            self._session.add(role)
            await self._flush_unique(f"Role '{payload.name}' already exists")
            await self._audit.record(
                actor,
                AuditAction.CREATE_ROLE,
                "role",
                role.id,
                {"name": role.name, "permissions": [permission.name for permission in permissions]},
            )

            for permission in permissions:
                self._session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                await self._audit.record(
                    actor,
                    AuditAction.ASSIGN_PERMISSION,
                    "role",
                    role.id,
                    {"role": role.name, "permission": permission.name, "changed": True},
                )

        self._logger.info("role_created", extra={"role_id": str(role.id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"create_role:{role.id}")
        return role

    async def update_role(self, role_id: UUID, payload: RoleUpdate, *, actor: Optional[str]) -> Role:
        updates = self._non_null_updates(payload.model_dump(exclude_unset=True), nullable=("description",))
        async with self._unit_of_work("update_role"):
            role = await self._get_role(role_id)
            new_name = updates.get("name")
            if new_name is not None and new_name != role.name:
                if role.is_system:
                    raise ProtectedEntityError(f"System role '{role.name}' cannot be renamed")
                await self._ensure_unique(Role, new_name, f"Role '{new_name}' already exists")

            changes = self._apply_updates(role, updates, ("name", "display_name", "description", "sort_order"))
            await self._flush_unique(f"Role '{role.name}' already exists")
            await self._audit.record(actor, AuditAction.UPDATE_ROLE, "role", role.id, {"changes": changes})

        self._logger.info("role_updated", extra={"role_id": str(role.id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"update_role:{role.id}")
        return role

    async def delete_role(self, role_id: UUID, *, actor: Optional[str]) -> None:
        async with self._unit_of_work("delete_role"):
            role = await self._get_role(role_id)
            if role.is_system:
                raise ProtectedEntityError(f"System role '{role.name}' cannot be deleted")

            active = await self._session.scalar(
                select(func.count())
                .select_from(UserRole)
                .where(UserRole.role_id == role.id)
                .where(effective_assignment_clause(datetime.now(timezone.utc)))
            )
            if active:
                raise ValidationError(f"Role '{role.name}' is still assigned to {active} user(s)")

            for permission in await self._role_permissions(role.id):
                await self._audit.record(
                    actor,
                    AuditAction.REVOKE_PERMISSION,
                    "role",
                    role.id,
                    {"role": role.name, "permission": permission.name, "changed": True},
                )
            await self._session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
            await self._session.execute(delete(UserRole).where(UserRole.role_id == role.id))
            await self._session.delete(role)
            await self._session.flush()
            await self._audit.record(actor, AuditAction.DELETE_ROLE, "role", role_id, {"name": role.name})

        self._logger.info("role_deleted", extra={"role_id": str(role_id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"delete_role:{role_id}")

    async def list_roles(self) -> List[Role]:
        with translate_store_errors("list_roles"):
            stmt = select(Role).order_by(Role.sort_order.asc(), Role.name.asc())
            return list((await self._session.scalars(stmt)).all())

    async def role_permission_names(self, role_ids: Iterable[UUID]) -> Dict[UUID, List[str]]:
        role_ids = list(role_ids)
        names: Dict[UUID, List[str]] = {role_id: [] for role_id in role_ids}
        if not role_ids:
            return names
        with translate_store_errors("role_permission_names"):
            stmt = (
                select(RolePermission.role_id, Permission.name)
                .join(Permission, RolePermission.permission_id == Permission.id)
                .where(RolePermission.role_id.in_(role_ids))
                .order_by(Permission.name.asc())
            )
            for role_id, name in (await self._session.execute(stmt)).all():
                names[role_id].append(name)
        return names

    async def get_role(self, role_id: UUID) -> Tuple[Role, List[str]]:
        """Return the role together with the names of the permissions it grants."""

        with translate_store_errors("get_role"):
            role = await self._get_role(role_id)
            permissions = await self._role_permissions(role.id)
        return role, sorted(permission.name for permission in permissions)

    # ------------------------------------------------------------ permissions

    async def create_permission(self, payload: PermissionCreate, *, actor: Optional[str]) -> Permission:
        resource = (payload.resource or "").strip()
        action = (payload.action or "").strip()
        if not resource or not action:
            raise ValidationError("Permission resource and action are required")
        name = (payload.name or f"{resource}:{action}").strip()
        self._validate_permission_name(name)

        async with self._unit_of_work("create_permission"):
            await self._ensure_unique(Permission, name, f"Permission '{name}' already exists")
            if payload.module_id is not None:
                await self._get_module(payload.module_id)

            permission = Permission(
                name=name,
                display_name=payload.display_name or name,
                description=payload.description,
                resource=resource,
                action=action,
                module_id=payload.module_id,
                is_system=False,
            )
            self._session.add(permission)
            await self._flush_unique(f"Permission '{name}' already exists")
            await self._audit.record(
                actor,
                AuditAction.CREATE_PERMISSION,
                "permission",
                permission.id,
                {"name": name, "resource": resource, "action": action},
            )

        self._logger.info(
            "permission_created",
            extra={"permission_id": str(permission.id), "actor": actor or SYSTEM_ACTOR},
        )
        await self._signal.broadcast(f"create_permission:{permission.id}")
        return permission

    async def update_permission(
        self,
        permission_id: UUID,
        payload: PermissionUpdate,
        *,
        actor: Optional[str],
    ) -> Permission:
        updates = payload.model_dump(exclude_unset=True)
        if updates.get("display_name", "") is None:
            updates.pop("display_name")
        for key in ("name", "resource", "action"):
            if key in updates:
                if updates[key] is None or not updates[key].strip():
                    raise ValidationError(f"Permission {key} cannot be blank")
                updates[key] = updates[key].strip()

        async with self._unit_of_work("update_permission"):
            permission = await self._get_permission(permission_id)
            locked = [
                key for key in ("name", "resource", "action") if key in updates and updates[key] != getattr(permission, key)
            ]
            if locked and permission.is_system:
                raise ProtectedEntityError(
                    f"System permission '{permission.name}' cannot change {', '.join(locked)}"
                )
            if "name" in updates and updates["name"] != permission.name:
                self._validate_permission_name(updates["name"])
                await self._ensure_unique(Permission, updates["name"], f"Permission '{updates['name']}' already exists")
            if updates.get("module_id") is not None:
                await self._get_module(updates["module_id"])

            changes = self._apply_updates(
                permission,
                updates,
                ("name", "resource", "action", "display_name", "description", "module_id"),
            )
            await self._flush_unique(f"Permission '{permission.name}' already exists")
            await self._audit.record(
                actor,
                AuditAction.UPDATE_PERMISSION,
                "permission",
                permission.id,
                {"changes": changes},
            )

        self._logger.info(
            "permission_updated",
            extra={"permission_id": str(permission.id), "actor": actor or SYSTEM_ACTOR},
        )
        await self._signal.broadcast(f"update_permission:{permission.id}")
        return permission

    async def delete_permission(self, permission_id: UUID, *, actor: Optional[str]) -> None:
        async with self._unit_of_work("delete_permission"):
            permission = await self._get_permission(permission_id)
            if permission.is_system:
                raise ProtectedEntityError(f"System permission '{permission.name}' cannot be deleted")

            granted_to = (
                await self._session.scalars(
                    select(Role)
                    .join(RolePermission, RolePermission.role_id == Role.id)
                    .where(RolePermission.permission_id == permission.id)
                )
            ).all()
            for role in granted_to:
                await self._audit.record(
                    actor,
                    AuditAction.REVOKE_PERMISSION,
                    "role",
                    role.id,
                    {"role": role.name, "permission": permission.name, "changed": True},
                )
            await self._session.execute(
                delete(RolePermission).where(RolePermission.permission_id == permission.id)
            )
            await self._session.delete(permission)
            await self._session.flush()
            await self._audit.record(
                actor,
                AuditAction.DELETE_PERMISSION,
                "permission",
                permission_id,
                {"name": permission.name},
            )

        self._logger.info(
            "permission_deleted",
            extra={"permission_id": str(permission_id), "actor": actor or SYSTEM_ACTOR},
        )
        await self._signal.broadcast(f"delete_permission:{permission_id}")

    async def list_permissions(self) -> List[Permission]:
        with translate_store_errors("list_permissions"):
            stmt = select(Permission).order_by(Permission.resource.asc(), Permission.action.asc())
            return list((await self._session.scalars(stmt)).all())

    async def list_permissions_grouped(self) -> Dict[str, List[Permission]]:
        """Group permissions by module name; permissions without a module land in `ungrouped`."""

        with translate_store_errors("list_permissions_grouped"):
            stmt = (
                select(Permission, PermissionModule.name)
                .outerjoin(PermissionModule, Permission.module_id == PermissionModule.id)
                .order_by(
                    PermissionModule.sort_order.asc(),
                    Permission.resource.asc(),
                    Permission.action.asc(),
                )
            )
            rows = (await self._session.execute(stmt)).all()

        groups: Dict[str, List[Permission]] = {}
        for permission, module_name in rows:
            groups.setdefault(module_name or UNGROUPED_MODULE, []).append(permission)
        return groups

    async def ensure_baseline_permissions(self, names: Optional[Iterable[str]] = None) -> int:
        """Idempotently create the baseline system permissions. Returns how many were created."""

        names = sorted(set(names if names is not None else get_settings().baseline_permissions))
        if not names:
            return 0

        created: List[Permission] = []
        async with self._unit_of_work("ensure_baseline_permissions"):
            existing = set(
                (await self._session.scalars(select(Permission.name).where(Permission.name.in_(names)))).all()
            )
            for name in names:
                if name in existing:
                    continue
                self._validate_permission_name(name)
                resource, action = split_permission_name(name)
                permission = Permission(
                    name=name,
                    display_name=name,
                    resource=resource,
                    action=action,
                    is_system=True,
                )
                self._session.add(permission)
                created.append(permission)
            if created:
                await self._session.flush()
            for permission in created:
                await self._audit.record(
                    SYSTEM_ACTOR,
                    AuditAction.CREATE_PERMISSION,
                    "permission",
                    permission.id,
                    {"name": permission.name, "baseline": True},
                )

        if created:
            self._logger.info("baseline_permissions_seeded", extra={"permissions": [p.name for p in created]})
            await self._signal.broadcast("ensure_baseline_permissions")
        return len(created)

    async def ensure_system_roles(self, roles: Optional[Dict[str, Iterable[str]]] = None) -> int:
        """Idempotently provision the system roles and their grants. Returns how many roles were created.

        Existing roles are promoted to system roles and receive any missing
        grant; grants added by administrators are never removed.
        """

        roles = roles if roles is not None else get_settings().system_roles
        if not roles:
            return 0

        created: List[str] = []
        changed = False
        async with self._unit_of_work("ensure_system_roles"):
            for name in sorted(roles):
                permissions = await self._permissions_by_name(roles[name])
                role = await self._session.scalar(select(Role).where(Role.name == name))
                granted: Set[UUID] = set()
                if role is None:
                    display_name, description, _ = SYSTEM_ROLE_DEFINITIONS.get(
                        name, (name.replace("_", " ").title(), None, [])
                    )
                    role = Role(name=name, display_name=display_name, description=description, is_system=True)
                    self._session.add(role)
                    await self._session.flush()
                    await self._audit.record(
                        SYSTEM_ACTOR,
                        AuditAction.CREATE_ROLE,
                        "role",
                        role.id,
                        {"name": name, "system": True, "permissions": sorted(p.name for p in permissions)},
                    )
                    created.append(name)
                else:
                    if not role.is_system:
                        role.is_system = True
                        await self._audit.record(
                            SYSTEM_ACTOR,
                            AuditAction.UPDATE_ROLE,
                            "role",
                            role.id,
                            {"changes": {"is_system": {"from": False, "to": True}}},
                        )
                        changed = True
                    granted = {permission.id for permission in await self._role_permissions(role.id)}

                for permission in sorted(permissions, key=lambda p: p.name):
                    if permission.id in granted:
                        continue
                    self._session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                    await self._audit.record(
                        SYSTEM_ACTOR,
                        AuditAction.ASSIGN_PERMISSION,
                        "role",
                        role.id,
                        {"role": name, "permission": permission.name, "changed": True},
                    )
                    changed = True
            await self._session.flush()

        if created or changed:
            self._logger.info("system_roles_seeded", extra={"roles": created})
            await self._signal.broadcast("ensure_system_roles")
        return len(created)

    # ---------------------------------------------------------------- modules

    async def create_module(self, payload: ModuleCreate, *, actor: Optional[str]) -> PermissionModule:
        async with self._unit_of_work("create_module"):
            await self._ensure_unique(PermissionModule, payload.name, f"Module '{payload.name}' already exists")
            module = PermissionModule(**payload.model_dump(), is_active=True, is_system=False)
            self._session.add(module)
            await self._flush_unique(f"Module '{payload.name}' already exists")
            await self._audit.record(actor, AuditAction.CREATE_MODULE, "module", module.id, {"name": module.name})

        self._logger.info("module_created", extra={"module_id": str(module.id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"create_module:{module.id}")
        return module

    async def update_module(self, module_id: UUID, payload: ModuleUpdate, *, actor: Optional[str]) -> PermissionModule:
        updates = self._non_null_updates(
            payload.model_dump(exclude_unset=True),
            nullable=("description", "icon", "color"),
        )
        async with self._unit_of_work("update_module"):
            module = await self._get_module(module_id)
            new_name = updates.get("name")
            if new_name is not None and new_name != module.name:
                if module.is_system:
                    raise ProtectedEntityError(f"System module '{module.name}' cannot be renamed")
                await self._ensure_unique(PermissionModule, new_name, f"Module '{new_name}' already exists")
            changes = self._apply_updates(
                module,
                updates,
                ("name", "display_name", "description", "icon", "color", "sort_order", "is_active"),
            )
            await self._flush_unique(f"Module '{module.name}' already exists")
            await self._audit.record(actor, AuditAction.UPDATE_MODULE, "module", module.id, {"changes": changes})

        self._logger.info("module_updated", extra={"module_id": str(module.id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"update_module:{module.id}")
        return module

    async def delete_module(self, module_id: UUID, *, actor: Optional[str]) -> None:
        async with self._unit_of_work("delete_module"):
            module = await self._get_module(module_id)
            if module.is_system:
                raise ProtectedEntityError(f"System module '{module.name}' cannot be deleted")
            await self._session.delete(module)
            await self._session.flush()
            await self._audit.record(actor, AuditAction.DELETE_MODULE, "module", module_id, {"name": module.name})

        self._logger.info("module_deleted", extra={"module_id": str(module_id), "actor": actor or SYSTEM_ACTOR})
        await self._signal.broadcast(f"delete_module:{module_id}")

    async def list_modules(self) -> List[PermissionModule]:
        with translate_store_errors("list_modules"):
            stmt = select(PermissionModule).order_by(PermissionModule.sort_order.asc(), PermissionModule.name.asc())
            return list((await self._session.scalars(stmt)).all())

    # ------------------------------------------------------- role assignments

    async def assign_role_to_user(
        self,
        user_id: UUID,
        role_id: UUID,
        *,
        actor: Optional[str],
        expires_at: Optional[datetime] = None,
    ) -> UserRole:
        now = datetime.now(timezone.utc)
        expires_at = self._normalize_datetime(expires_at)
        if expires_at is not None and expires_at <= now:
            raise ValidationError("expires_at must be in the future")

        async with self._unit_of_work("assign_role_to_user"):
            role = await self._get_role(role_id)
            assignment = await self._session.scalar(
                select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role.id)
            )
            changed = True
            if assignment is None:
                assignment = UserRole(
                    user_id=user_id,
                    role_id=role.id,
                    assigned_by=actor or SYSTEM_ACTOR,
                    assigned_at=now,
                    expires_at=expires_at,
                    is_active=True,
                )
                self._session.add(assignment)
            elif assignment.is_effective(now):
                changed = False
            else:
                assignment.is_active = True
                assignment.assigned_by = actor or SYSTEM_ACTOR
                assignment.assigned_at = now
                assignment.expires_at = expires_at
            await self._session.flush()

            await self._audit.record(
                actor,
                AuditAction.ASSIGN_ROLE,
                "user",
                user_id,
                {
                    "role_id": str(role.id),
                    "role": role.name,
                    "expires_at": assignment.expires_at.isoformat() if assignment.expires_at else None,
                    "changed": changed,
                },
            )

        self._logger.info(
            "role_assigned",
            extra={"user_id": str(user_id), "role_id": str(role_id), "changed": changed, "actor": actor or SYSTEM_ACTOR},
        )
        await self._signal.broadcast(f"assign_role:{user_id}")
        return assignment

    async def revoke_role_from_user(self, user_id: UUID, role_id: UUID, *, actor: Optional[str]) -> UserRole:
        async with self._unit_of_work("revoke_role_from_user"):
            role = await self._get_role(role_id)
            assignment = await self._session.scalar(
                select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role.id)
            )
            if assignment is None:
                raise NotFoundError(f"User {user_id} has no assignment for role '{role.name}'")

            changed = assignment.is_active
            assignment.is_active = False
            await self._session.flush()
            await self._audit.record(
                actor,
                AuditAction.REVOKE_ROLE,
                "user",
                user_id,
                {"role_id": str(role.id), "role": role.name, "changed": changed},
            )

        self._logger.info(
            "role_revoked",
            extra={"user_id": str(user_id), "role_id": str(role_id), "changed": changed, "actor": actor or SYSTEM_ACTOR},
        )
        await self._signal.broadcast(f"revoke_role:{user_id}")
        return assignment

    async def list_user_assignments(self, user_id: UUID, *, include_inactive: bool = False) -> List[UserRole]:
        with translate_store_errors("list_user_assignments"):
            stmt = select(UserRole).where(UserRole.user_id == user_id)
            if not include_inactive:
                stmt = stmt.where(effective_assignment_clause(datetime.now(timezone.utc)))
            stmt = stmt.order_by(UserRole.assigned_at.desc())
            return list((await self._session.scalars(stmt)).all())

    # ------------------------------------------------------- role permissions

    async def assign_permission_to_role(self, role_id: UUID, permission_id: UUID, *, actor: Optional[str]) -> bool:
        """Grant a permission to a role. Returns False when the grant already existed."""

        async with self._unit_of_work("assign_permission_to_role"):
            role = await self._get_role(role_id)
            self._ensure_role_permissions_mutable(role)
            permission = await self._get_permission(permission_id)

            existing = await self._session.get(RolePermission, (role.id, permission.id))
            changed = existing is None
            if changed:
                self._session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                await self._session.flush()
            await self._audit.record(
                actor,
                AuditAction.ASSIGN_PERMISSION,
                "role",
                role.id,
                {"role": role.name, "permission": permission.name, "changed": changed},
            )

        self._logger.info(
            "role_permission_assigned",
            extra={"role_id": str(role_id), "permission_id": str(permission_id), "changed": changed},
        )
        await self._signal.broadcast(f"assign_permission:{role_id}")
        return changed

    async def remove_permission_from_role(self, role_id: UUID, permission_id: UUID, *, actor: Optional[str]) -> None:
        async with self._unit_of_work("remove_permission_from_role"):
            role = await self._get_role(role_id)
            self._ensure_role_permissions_mutable(role)
            permission = await self._get_permission(permission_id)

            existing = await self._session.get(RolePermission, (role.id, permission.id))
            if existing is None:
                raise NotFoundError(f"Role '{role.name}' does not grant '{permission.name}'")
            await self._session.delete(existing)
            await self._session.flush()
            await self._audit.record(
                actor,
                AuditAction.REVOKE_PERMISSION,
                "role",
                role.id,
                {"role": role.name, "permission": permission.name, "changed": True},
            )

        self._logger.info(
            "role_permission_removed",
            extra={"role_id": str(role_id), "permission_id": str(permission_id)},
        )
        await self._signal.broadcast(f"revoke_permission:{role_id}")

    # ---------------------------------------------------------------- helpers

    def _unit_of_work(self, operation: str) -> AsyncContextManager[None]:
        return unit_of_work(self._session, operation)

    async def _flush_unique(self, message: str) -> None:
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError(message) from exc

    async def _ensure_unique(self, model, name: str, message: str) -> None:  # noqa: ANN001
        existing = await self._session.scalar(select(model.id).where(model.name == name))
        if existing is not None:
            raise DuplicateNameError(message)

    async def _permissions_by_name(self, names: Iterable[str]) -> List[Permission]:
        names = sorted(set(names))
        if not names:
            return []
        permissions = list((await self._session.scalars(select(Permission).where(Permission.name.in_(names)))).all())
        missing = set(names) - {permission.name for permission in permissions}
        if missing:
            raise ValidationError(f"Unknown permissions: {', '.join(sorted(missing))}")
        return permissions

    async def _role_permissions(self, role_id: UUID) -> List[Permission]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
        )
        return list((await self._session.scalars(stmt)).all())

    async def _get_role(self, role_id: UUID) -> Role:
        role = await self._session.get(Role, role_id)
        if role is None:
            raise NotFoundError(f"Role {role_id} not found")
        return role

    async def _get_permission(self, permission_id: UUID) -> Permission:
        permission = await self._session.get(Permission, permission_id)
        if permission is None:
            raise NotFoundError(f"Permission {permission_id} not found")
        return permission

    async def _get_module(self, module_id: UUID) -> PermissionModule:
        module = await self._session.get(PermissionModule, module_id)
        if module is None:
            raise NotFoundError(f"Module {module_id} not found")
        return module

    @staticmethod
    def _ensure_role_permissions_mutable(role: Role) -> None:
        if role.is_system and role.name in get_settings().immutable_system_roles:
            raise ProtectedEntityError(f"Permissions of system role '{role.name}' cannot be changed")

    @staticmethod
    def _validate_permission_name(name: str) -> None:
        try:
            split_permission_name(name)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    @staticmethod
    def _non_null_updates(updates: Dict[str, object], *, nullable: Iterable[str]) -> Dict[str, object]:
        allowed = set(nullable)
        return {key: value for key, value in updates.items() if value is not None or key in allowed}

    @staticmethod
    def _apply_updates(target, updates: Dict[str, object], fields: Iterable[str]) -> Dict[str, object]:  # noqa: ANN001
        changes: Dict[str, object] = {}
        for field in fields:
            if field in updates and updates[field] != getattr(target, field):
                changes[field] = {"from": getattr(target, field), "to": updates[field]}
                setattr(target, field, updates[field])
        return changes

    @staticmethod
    def _normalize_datetime(value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
