"""Pydantic schemas for API payloads."""

from rbac_core.schemas.assignment import (
    RoleAssignmentCreate,
    RoleAssignmentResponse,
    RoleAssignmentRevoke,
)
from rbac_core.schemas.audit import AuditLogEntryResponse, AuditLogFilters, AuditLogPage, Pagination
from rbac_core.schemas.authorization import (
    ActionCheckRequest,
    AuthorizationResponse,
    EffectiveAccessResponse,
    LegacyPermissionSummary,
    PermissionCheckRequest,
)
from rbac_core.schemas.invalidation import InvalidationMessage
from rbac_core.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate, MenuNodeResponse
from rbac_core.schemas.permission import (
    GroupedPermissionsResponse,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
)
from rbac_core.schemas.role import RoleCreate, RolePermissionChange, RoleResponse, RoleUpdate

__all__ = [
    "ActionCheckRequest",
    "AuditLogEntryResponse",
    "AuditLogFilters",
    "AuditLogPage",
    "AuthorizationResponse",
    "EffectiveAccessResponse",
    "GroupedPermissionsResponse",
    "InvalidationMessage",
    "LegacyPermissionSummary",
    "MenuItemCreate",
    "MenuItemResponse",
    "MenuItemUpdate",
    "MenuNodeResponse",
    "ModuleCreate",
    "ModuleResponse",
    "ModuleUpdate",
    "Pagination",
    "PermissionCheckRequest",
    "PermissionCreate",
    "PermissionResponse",
    "PermissionUpdate",
    "RoleAssignmentCreate",
    "RoleAssignmentResponse",
    "RoleAssignmentRevoke",
    "RoleCreate",
    "RolePermissionChange",
    "RoleResponse",
    "RoleUpdate",
]
