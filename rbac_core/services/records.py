"""Immutable snapshots handed from the store adapter to business logic.

Every relation is resolved here into an explicit shape: a has-one reference is
an optional scalar, a has-many relation is an ordered tuple.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, Optional, Tuple
from uuid import UUID

from rbac_core.models.menu_item import MenuItem
from rbac_core.models.permission import Permission
from rbac_core.models.role import Role


@dataclass(frozen=True)
class RoleRecord:
    id: UUID
    name: str
    display_name: str
    description: Optional[str]
    is_system: bool

    @classmethod
    def from_model(cls, role: Role) -> "RoleRecord":
        return cls(
            id=role.id,
            name=role.name,
            display_name=role.display_name,
            description=role.description,
            is_system=role.is_system,
        )


@dataclass(frozen=True)
class PermissionRecord:
    id: UUID
    name: str
    display_name: str
    resource: str
    action: str
    module_id: Optional[UUID]
    is_system: bool

    @classmethod
    def from_model(cls, permission: Permission) -> "PermissionRecord":
        return cls(
            id=permission.id,
            name=permission.name,
            display_name=permission.display_name,
            resource=permission.resource,
            action=permission.action,
            module_id=permission.module_id,
            is_system=permission.is_system,
        )


@dataclass(frozen=True)
class RoleGrant:
    """A role reached through one effective user assignment."""

    role: RoleRecord
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class MenuItemRecord:
    id: UUID
    parent_id: Optional[UUID]
    label: str
    href: str
    icon: Optional[str]
    description: Optional[str]
    permission_id: Optional[UUID]
    sort_order: int
    is_active: bool

    @classmethod
    def from_model(cls, item: MenuItem) -> "MenuItemRecord":
        return cls(
            id=item.id,
            parent_id=item.parent_id,
            label=item.label,
            href=item.href,
            icon=item.icon,
            description=item.description,
            permission_id=item.permission_id,
            sort_order=item.sort_order,
            is_active=item.is_active,
        )


@dataclass(frozen=True)
class EffectiveAccess:
    """Roles and permissions a user holds at one point in time."""

    roles: FrozenSet[RoleRecord] = field(default_factory=frozenset)
    permissions: FrozenSet[PermissionRecord] = field(default_factory=frozenset)
    valid_until: Optional[datetime] = None

    @classmethod
    def from_grants(
        cls,
        grants: Iterable[RoleGrant],
        permissions: Iterable[PermissionRecord],
    ) -> "EffectiveAccess":
        roles_by_id = {}
        valid_until: Optional[datetime] = None
        for grant in grants:
            roles_by_id[grant.role.id] = grant.role
            if grant.expires_at is not None and (valid_until is None or grant.expires_at < valid_until):
                valid_until = grant.expires_at
        permissions_by_id = {permission.id: permission for permission in permissions}
        return cls(
            roles=frozenset(roles_by_id.values()),
            permissions=frozenset(permissions_by_id.values()),
            valid_until=valid_until,
        )

    @property
    def permission_names(self) -> FrozenSet[str]:
        return frozenset(permission.name for permission in self.permissions)

    @property
    def role_names(self) -> FrozenSet[str]:
        return frozenset(role.name for role in self.roles)

    @property
    def permission_pairs(self) -> FrozenSet[Tuple[str, str]]:
        return frozenset((permission.resource, permission.action) for permission in self.permissions)


ANONYMOUS_ACCESS = EffectiveAccess()
