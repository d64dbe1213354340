"""Adapter serving the flag set of the old single-role permissions API."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from rbac_core.models import permissions_constants as perms
from rbac_core.schemas.authorization import LegacyPermissionSummary
from rbac_core.services.errors import StoreUnavailableError
from rbac_core.services.records import ANONYMOUS_ACCESS, EffectiveAccess
from rbac_core.services.resolver import PermissionResolver, get_permission_resolver

LOGGER = logging.getLogger("rbac_core.services.legacy")


class LegacyPermissionAdapter:
    """Derives every legacy flag from one resolver snapshot."""

    def __init__(self, resolver: Optional[PermissionResolver] = None) -> None:
        self._resolver = resolver or get_permission_resolver()

    async def summary(self, user_id: Optional[UUID]) -> LegacyPermissionSummary:
        try:
            access = await self._resolver.get_effective_access(user_id)
        except (StoreUnavailableError, SQLAlchemyError):
            LOGGER.error("legacy_summary_store_unavailable", exc_info=True, extra={"user_id": str(user_id)})
            access = ANONYMOUS_ACCESS
        return self._summarize(access)

    @staticmethod
    def _summarize(access: EffectiveAccess) -> LegacyPermissionSummary:
        names = access.permission_names
        # Clients of the old API expect a single role; pick the first by name.
        role_names = sorted(access.role_names)
        return LegacyPermissionSummary(
            user_role=role_names[0] if role_names else None,
            can_create_case=perms.CASES_CREATE in names,
            can_edit_case=perms.CASES_UPDATE in names,
            can_delete_case=perms.CASES_DELETE in names,
            can_manage_users=perms.ADMIN_USERS in names,
            can_access_admin=perms.ADMIN_DASHBOARD in names,
            can_manage_rbac=perms.ADMIN_RBAC in names,
            can_approve_contributions=perms.CONTRIBUTIONS_APPROVE in names,
        )
