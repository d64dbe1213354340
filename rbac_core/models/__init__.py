"""SQLAlchemy ORM models for the RBAC core."""

from rbac_core.models.base import Base  # noqa: F401
from rbac_core.models.permission_module import PermissionModule  # noqa: F401
from rbac_core.models.permission import Permission  # noqa: F401
from rbac_core.models.role import Role  # noqa: F401
from rbac_core.models.role_permission import RolePermission  # noqa: F401
from rbac_core.models.user_role import UserRole  # noqa: F401
from rbac_core.models.menu_item import MenuItem  # noqa: F401
from rbac_core.models.audit_log import AuditLog  # noqa: F401
