"""Business logic service layer."""

from rbac_core.services.admin import RoleAdminService  # noqa: F401
from rbac_core.services.audit import AuditService  # noqa: F401
from rbac_core.services.invalidation import CacheInvalidationSignal  # noqa: F401
from rbac_core.services.menu import MenuService, MenuTreeBuilder  # noqa: F401
from rbac_core.services.resolver import PermissionResolver  # noqa: F401
