"""Effective role and permission resolution with a fail-closed check API."""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from rbac_core.core.config import get_settings
from rbac_core.schemas.invalidation import InvalidationMessage
from rbac_core.services.cache import AccessCache, InMemoryAccessCache
from rbac_core.services.errors import StoreUnavailableError
from rbac_core.services.invalidation import CacheInvalidationSignal, get_invalidation_signal
from rbac_core.services.records import ANONYMOUS_ACCESS, EffectiveAccess, PermissionRecord, RoleRecord
from rbac_core.services.store import RbacStore

UserRef = Union[UUID, str, None]


class PermissionResolver:
    """Computes what a user may do from active, unexpired role assignments.

    Results are cached per user until the TTL runs out, the earliest grant
    expires, or an invalidation token newer than the entry's stamp arrives.
    Only the check methods (`has_*`, `can_perform_action`) absorb store
    outages; they answer False so a failure can never widen access.
    """

    def __init__(
        self,
        store: Optional[RbacStore] = None,
        *,
        cache: Optional[AccessCache] = None,
        signal: Optional[CacheInvalidationSignal] = None,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        if ttl_seconds is None:
            ttl_seconds = get_settings().permission_cache_ttl
        self._store = store or RbacStore()
        self._cache = cache or InMemoryAccessCache(ttl_seconds)
        self._signal = signal or get_invalidation_signal()
        self._logger = logging.getLogger("rbac_core.services.resolver")
        self._cache.invalidate(self._signal.observed_token)
        self._unsubscribe = self._signal.subscribe(self._on_invalidation)

    @property
    def cache(self) -> AccessCache:
        return self._cache

    def close(self) -> None:
        self._unsubscribe()

    async def get_effective_access(self, user_id: UserRef) -> EffectiveAccess:
        resolved_id = self._coerce_user_id(user_id)
        if resolved_id is None:
            return ANONYMOUS_ACCESS

        await self._signal.poll()

        cached = self._cache.get(resolved_id)
        if cached is not None:
            self._logger.debug("rbac_cache_hit", extra={"user_id": str(resolved_id)})
            return cached

        token = self._cache.token
        access = await self._store.load_access(resolved_id)
        if not self._cache.put(resolved_id, access, token=token):
            self._logger.info(
                "rbac_cache_stale_result_discarded",
                extra={"user_id": str(resolved_id), "token": token},
            )
        return access

    async def get_effective_roles(self, user_id: UserRef) -> FrozenSet[RoleRecord]:
        return (await self.get_effective_access(user_id)).roles

    async def get_effective_permissions(self, user_id: UserRef) -> FrozenSet[PermissionRecord]:
        return (await self.get_effective_access(user_id)).permissions

    async def has_permission(self, user_id: UserRef, permission_name: str) -> bool:
        access = await self._access_for_check(user_id, "has_permission", [permission_name])
        return access is not None and permission_name in access.permission_names

    async def has_any_permission(self, user_id: UserRef, permission_names: Iterable[str]) -> bool:
        names = list(permission_names)
        if not names:
            return False
        access = await self._access_for_check(user_id, "has_any_permission", names)
        return access is not None and not access.permission_names.isdisjoint(names)

    async def has_all_permissions(self, user_id: UserRef, permission_names: Iterable[str]) -> bool:
        names = list(permission_names)
        if not names:
            return False
        access = await self._access_for_check(user_id, "has_all_permissions", names)
        return access is not None and access.permission_names.issuperset(names)

    async def can_perform_action(self, user_id: UserRef, resource: str, action: str) -> bool:
        access = await self._access_for_check(user_id, "can_perform_action", [f"{resource}:{action}"])
        return access is not None and (resource, action) in access.permission_pairs

    async def has_role(self, user_id: UserRef, role_name: str) -> bool:
        access = await self._access_for_check(user_id, "has_role", [role_name])
        return access is not None and role_name in access.role_names

    async def has_any_role(self, user_id: UserRef, role_names: Iterable[str]) -> bool:
        names = list(role_names)
        if not names:
            return False
        access = await self._access_for_check(user_id, "has_any_role", names)
        return access is not None and not access.role_names.isdisjoint(names)

    async def _access_for_check(self, user_id: UserRef, check: str, targets: list[str]) -> Optional[EffectiveAccess]:
        try:
            return await self.get_effective_access(user_id)
        except (StoreUnavailableError, SQLAlchemyError):
            self._logger.error(
                "permission_check_store_unavailable",
                exc_info=True,
                extra={"user_id": str(user_id), "check": check, "targets": targets, "decision": "deny"},
            )
            return None

    def _on_invalidation(self, message: InvalidationMessage) -> None:
        dropped = self._cache.invalidate(message.token)
        self._logger.debug(
            "rbac_cache_invalidated",
            extra={"token": message.token, "reason": message.reason, "dropped": dropped},
        )

    def _coerce_user_id(self, user_id: UserRef) -> Optional[UUID]:
        if user_id is None or isinstance(user_id, UUID):
            return user_id
        try:
            return UUID(str(user_id))
        except ValueError:
            self._logger.info("rbac_unknown_user_reference", extra={"user_id": str(user_id)})
            return None


_resolver: Optional[PermissionResolver] = None


def get_permission_resolver() -> PermissionResolver:
    """Return the process-wide resolver (its cache is shared by every request)."""

    global _resolver
    if _resolver is None:
        _resolver = PermissionResolver()
    return _resolver


def set_permission_resolver(resolver: Optional[PermissionResolver]) -> None:
    """Override the cached resolver (primarily for tests)."""

    global _resolver
    if _resolver is not None and _resolver is not resolver:
        _resolver.close()
    _resolver = resolver
