from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from helpers import assign, create_permission, create_role, revoke, seed_baseline
from rbac_core.core.database import session_scope
from rbac_core.models.user_role import UserRole
from rbac_core.services.cache import InMemoryAccessCache
from rbac_core.services.errors import StoreUnavailableError
from rbac_core.services.invalidation import get_invalidation_signal
from rbac_core.services.records import EffectiveAccess, PermissionRecord, RoleGrant, RoleRecord
from rbac_core.services.resolver import PermissionResolver
from rbac_core.services.store import RbacStore, translate_store_errors


class CountingStore(RbacStore):
    def __init__(self) -> None:
        super().__init__()
        self.loads = 0

    async def load_access(self, user_id: UUID, *, now=None) -> EffectiveAccess:  # noqa: ANN001
        self.loads += 1
        return await super().load_access(user_id, now=now)


class FailingStore(RbacStore):
    async def load_access(self, user_id: UUID, *, now=None) -> EffectiveAccess:  # noqa: ANN001
        raise StoreUnavailableError("RBAC store unavailable during load_access")


def _names(permissions) -> set[str]:  # noqa: ANN001
    return {permission.name for permission in permissions}


@pytest.mark.asyncio
async def test_user_without_roles_has_no_permissions() -> None:
    await seed_baseline()
    store = CountingStore()
    resolver = PermissionResolver(store)

    assert await resolver.get_effective_permissions(uuid4()) == frozenset()
    assert await resolver.get_effective_roles(uuid4()) == frozenset()
    assert await resolver.get_effective_permissions(None) == frozenset()
    assert await resolver.has_permission(None, "cases:view_public") is False
    # Anonymous lookups never reach the store.
    assert store.loads == 2


@pytest.mark.asyncio
async def test_permission_reachable_through_two_roles_counted_once() -> None:
    await seed_baseline()
    donor = await create_role("donor", ["cases:view_public"])
    volunteer = await create_role("volunteer", ["cases:view_public", "cases:create"])
    user_id = uuid4()
    await assign(user_id, donor)
    await assign(user_id, volunteer)

    permissions = await PermissionResolver().get_effective_permissions(user_id)

    assert sorted(permission.name for permission in permissions) == ["cases:create", "cases:view_public"]


@pytest.mark.asyncio
async def test_donor_gains_admin_permission_after_assignment() -> None:
    await seed_baseline()
    donor = await create_role("donor", ["cases:view_public"])
    admin = await create_role("admin", ["cases:view_public", "admin:rbac"])
    user_id = uuid4()
    await assign(user_id, donor)
    resolver = PermissionResolver()

    assert await resolver.has_permission(user_id, "admin:rbac") is False
    assert await resolver.has_permission(user_id, "cases:view_public") is True

    await assign(user_id, admin)

    assert await resolver.has_permission(user_id, "admin:rbac") is True
    assert await resolver.has_permission(user_id, "cases:view_public") is True
    assert await resolver.has_role(user_id, "admin") is True
    assert await resolver.has_any_role(user_id, ["super_admin", "donor"]) is True


@pytest.mark.asyncio
async def test_revoke_removes_only_uniquely_reachable_permissions() -> None:
    await seed_baseline()
    donor = await create_role("donor", ["cases:view_public"])
    editor = await create_role("editor", ["cases:view_public", "cases:update"])
    user_id = uuid4()
    await assign(user_id, donor)
    await assign(user_id, editor)
    resolver = PermissionResolver()
    assert _names(await resolver.get_effective_permissions(user_id)) == {"cases:view_public", "cases:update"}

    await revoke(user_id, editor)

    assert _names(await resolver.get_effective_permissions(user_id)) == {"cases:view_public"}
    assert _names(await resolver.get_effective_roles(user_id)) == {"donor"}


@pytest.mark.asyncio
async def test_expired_assignment_contributes_nothing() -> None:
    await seed_baseline()
    editor = await create_role("editor", ["cases:update"])
    user_id = uuid4()
    await assign(user_id, editor, expires_at=datetime.now(timezone.utc) + timedelta(days=1))

    async with session_scope() as session:
        await session.execute(
            update(UserRole)
            .where(UserRole.user_id == user_id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )

    resolver = PermissionResolver()
    assert await resolver.get_effective_permissions(user_id) == frozenset()
    assert await resolver.has_permission(user_id, "cases:update") is False


@pytest.mark.asyncio
async def test_can_perform_action_matches_pair_not_name() -> None:
    await seed_baseline()
    await create_permission("reports", "export", name="reporting:export_all")
    analyst = await create_role("analyst", ["reporting:export_all"])
    user_id = uuid4()
    await assign(user_id, analyst)
    resolver = PermissionResolver()

    assert await resolver.can_perform_action(user_id, "reports", "export") is True
    assert await resolver.can_perform_action(user_id, "reports", "delete") is False
    assert await resolver.has_permission(user_id, "reports:export") is False


@pytest.mark.asyncio
async def test_any_and_all_checks() -> None:
    await seed_baseline()
    editor = await create_role("editor", ["cases:create", "cases:update"])
    user_id = uuid4()
    await assign(user_id, editor)
    resolver = PermissionResolver()

    assert await resolver.has_all_permissions(user_id, ["cases:create", "cases:update"]) is True
    assert await resolver.has_all_permissions(user_id, ["cases:create", "cases:delete"]) is False
    assert await resolver.has_any_permission(user_id, ["cases:delete", "cases:update"]) is True
    assert await resolver.has_any_permission(user_id, ["admin:rbac"]) is False
    assert await resolver.has_any_permission(user_id, []) is False
    assert await resolver.has_all_permissions(user_id, []) is False


@pytest.mark.asyncio
async def test_cache_hit_skips_store_until_invalidated() -> None:
    await seed_baseline()
    donor = await create_role("donor", ["cases:view_public"])
    user_id = uuid4()
    await assign(user_id, donor)
    store = CountingStore()
    resolver = PermissionResolver(store)

    await resolver.has_permission(user_id, "cases:view_public")
    await resolver.has_permission(user_id, "cases:create")
    assert store.loads == 1

    await get_invalidation_signal().broadcast("test")
    await resolver.has_permission(user_id, "cases:view_public")
    assert store.loads == 2


@pytest.mark.asyncio
async def test_result_computed_across_invalidation_is_not_cached() -> None:
    class RacingStore(RbacStore):
        async def load_access(self, user_id: UUID, *, now=None) -> EffectiveAccess:  # noqa: ANN001
            await get_invalidation_signal().broadcast("concurrent mutation")
            return EffectiveAccess()

    cache = InMemoryAccessCache(300)
    resolver = PermissionResolver(RacingStore(), cache=cache)

    assert await resolver.get_effective_permissions(uuid4()) == frozenset()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cancelled_lookup_leaves_cache_untouched() -> None:
    started = asyncio.Event()

    class HangingStore(RbacStore):
        async def load_access(self, user_id: UUID, *, now=None) -> EffectiveAccess:  # noqa: ANN001
            started.set()
            await asyncio.Event().wait()
            return EffectiveAccess()

    cache = InMemoryAccessCache(300)
    resolver = PermissionResolver(HangingStore(), cache=cache)

    task = asyncio.create_task(resolver.has_permission(uuid4(), "cases:create"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_store_outage_denies_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    resolver = PermissionResolver(FailingStore())
    user_id = uuid4()

    with caplog.at_level(logging.ERROR, logger="rbac_core.services.resolver"):
        assert await resolver.has_permission(user_id, "cases:view_public") is False
        assert await resolver.has_any_permission(user_id, ["cases:view_public"]) is False
        assert await resolver.can_perform_action(user_id, "cases", "view_public") is False

    records = [record for record in caplog.records if record.getMessage() == "permission_check_store_unavailable"]
    assert len(records) == 3
    assert all(record.levelno == logging.ERROR and record.exc_info for record in records)

    with pytest.raises(StoreUnavailableError):
        await resolver.get_effective_permissions(user_id)


@pytest.mark.asyncio
async def test_unreachable_database_surfaces_as_store_unavailable(tmp_path) -> None:  # noqa: ANN001
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'rbac.db'}")
    resolver = PermissionResolver(RbacStore(async_sessionmaker(engine)))
    try:
        with pytest.raises(StoreUnavailableError):
            await resolver.get_effective_roles(uuid4())
        assert await resolver.has_role(uuid4(), "donor") is False
    finally:
        await engine.dispose()


def test_cache_entry_never_outlives_earliest_grant_expiry() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ticks = [1000.0]
    cache = InMemoryAccessCache(300, clock=lambda: ticks[0], wall_clock=lambda: now)
    role = RoleRecord(id=uuid4(), name="donor", display_name="Donor", description=None, is_system=False)
    permission = PermissionRecord(
        id=uuid4(),
        name="cases:view_public",
        display_name="View cases",
        resource="cases",
        action="view_public",
        module_id=None,
        is_system=True,
    )
    access = EffectiveAccess.from_grants(
        [RoleGrant(role=role, expires_at=now + timedelta(seconds=30)), RoleGrant(role=role, expires_at=None)],
        [permission, permission],
    )
    user_id = uuid4()

    assert len(access.permissions) == 1
    assert cache.put(user_id, access, token=cache.token) is True
    ticks[0] += 29
    assert cache.get(user_id) is access
    ticks[0] += 2
    assert cache.get(user_id) is None


def test_cache_refuses_snapshot_from_older_token() -> None:
    cache = InMemoryAccessCache(300)
    user_id = uuid4()
    token = cache.token
    cache.put(user_id, EffectiveAccess(), token=token)

    assert cache.invalidate(token + 1) == 1
    assert cache.put(user_id, EffectiveAccess(), token=token) is False
    assert cache.get(user_id) is None
    assert cache.invalidate(token) == 0


@pytest.mark.asyncio
async def test_unusable_query_fails_closed(caplog: pytest.LogCaptureFixture) -> None:
    class ForbiddenStore(RbacStore):
        async def load_access(self, user_id: UUID, *, now=None) -> EffectiveAccess:  # noqa: ANN001
            raise ProgrammingError("SELECT 1", {}, Exception("permission denied for table user_roles"))

    resolver = PermissionResolver(ForbiddenStore())
    user_id = uuid4()

    with caplog.at_level(logging.ERROR, logger="rbac_core.services.resolver"):
        assert await resolver.has_permission(user_id, "admin:rbac") is False
        assert await resolver.has_all_permissions(user_id, ["admin:rbac"]) is False
        assert await resolver.can_perform_action(user_id, "admin", "rbac") is False

    assert sum(record.getMessage() == "permission_check_store_unavailable" for record in caplog.records) == 3


def test_read_queries_map_any_database_error_to_store_unavailable() -> None:
    error = ProgrammingError("SELECT 1", {}, Exception("permission denied for table roles"))

    with pytest.raises(StoreUnavailableError):
        with translate_store_errors("load_access", read_only=True):
            raise error

    # Commands keep the original error so constraint handling stays with the caller.
    with pytest.raises(ProgrammingError):
        with translate_store_errors("create_role"):
            raise error
