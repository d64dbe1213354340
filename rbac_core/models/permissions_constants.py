"""Permission names other subsystems key off of.

Names use the stable `resource:action` wire format.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

# Administration
ADMIN_RBAC = "admin:rbac"
ADMIN_DASHBOARD = "admin:dashboard"
ADMIN_USERS = "admin:users"

# Cases
CASES_VIEW_PUBLIC = "cases:view_public"
CASES_CREATE = "cases:create"
CASES_UPDATE = "cases:update"
CASES_DELETE = "cases:delete"

# Contributions
CONTRIBUTIONS_APPROVE = "contributions:approve"


def get_baseline_permissions() -> List[str]:
    """Return the permissions seeded as system permissions at startup."""
    return [
        ADMIN_RBAC,
        ADMIN_DASHBOARD,
        ADMIN_USERS,
        CASES_VIEW_PUBLIC,
        CASES_CREATE,
        CASES_UPDATE,
        CASES_DELETE,
        CONTRIBUTIONS_APPROVE,
    ]


def split_permission_name(name: str) -> tuple[str, str]:
    """Split `resource:action` into its parts.

    Raises ValueError unless the name holds exactly one colon with both sides
    non-empty.
    """
    resource, sep, action = name.partition(":")
    if not sep or not resource.strip() or not action.strip() or ":" in action:
        raise ValueError(f"Permission name '{name}' must look like 'resource:action'")
    return resource, action


# System roles seeded at startup: name -> (display name, description, permissions).
SYSTEM_ROLE_DEFINITIONS: Dict[str, Tuple[str, str, List[str]]] = {
    "admin": (
        "Administrator",
        "Full system access with all permissions",
        get_baseline_permissions(),
    ),
    "moderator": (
        "Moderator",
        "Can manage cases and contributions but not system settings",
        [ADMIN_DASHBOARD, CASES_VIEW_PUBLIC, CASES_CREATE, CASES_UPDATE, CONTRIBUTIONS_APPROVE],
    ),
    "donor": (
        "Donor",
        "Regular user who can donate and view cases",
        [CASES_VIEW_PUBLIC],
    ),
}


def get_system_role_permissions() -> Dict[str, List[str]]:
    """Return the default `role name -> permission names` map for system roles."""
    return {name: list(permissions) for name, (_, _, permissions) in SYSTEM_ROLE_DEFINITIONS.items()}
