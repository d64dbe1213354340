from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from helpers import ADMIN_ACTOR, assign, create_role, revoke, seed_baseline
from rbac_core.core.database import session_scope
from rbac_core.models.audit_log import AuditAction, AuditLog, AuditSeverity, ImmutableAuditEntryError
from rbac_core.schemas.audit import AuditLogFilters, Pagination
from rbac_core.services.audit import GENESIS_HASH, AuditService
from rbac_core.services.audit_verifier import AuditVerificationError, AuditVerifier


async def _record_many(*actions: AuditAction) -> list[AuditLog]:
    async with session_scope() as session:
        service = AuditService(session)
        return [
            await service.record(ADMIN_ACTOR, action, "role", uuid4(), {"step": index})
            for index, action in enumerate(actions)
        ]


@pytest.mark.asyncio
async def test_audit_chain_sequences_and_hashes() -> None:
    await _record_many(AuditAction.CREATE_ROLE, AuditAction.UPDATE_ROLE)

    async with session_scope() as session:
        entries = (await session.scalars(select(AuditLog).order_by(AuditLog.sequence))).all()
        assert [entry.sequence for entry in entries] == [1, 2]
        assert entries[0].previous_hash == GENESIS_HASH
        assert entries[1].previous_hash == entries[0].entry_hash

        result = await AuditVerifier(session).verify()
        assert result.checked == 2


@pytest.mark.asyncio
async def test_audit_chain_tampering_detected() -> None:
    entries = await _record_many(AuditAction.ASSIGN_ROLE)

    async with session_scope() as session:
        # Bulk statements bypass the ORM append-only guard, like a direct SQL edit would.
        await session.execute(
            update(AuditLog).where(AuditLog.id == entries[0].id).values(detail={"step": "forged"})
        )

    async with session_scope() as session:
        with pytest.raises(AuditVerificationError):
            await AuditVerifier(session).verify()


@pytest.mark.asyncio
async def test_audit_chain_reordering_detected() -> None:
    entries = await _record_many(AuditAction.CREATE_ROLE, AuditAction.DELETE_ROLE)

    async with session_scope() as session:
        await session.execute(
            update(AuditLog).where(AuditLog.id == entries[1].id).values(previous_hash=GENESIS_HASH)
        )

    async with session_scope() as session:
        with pytest.raises(AuditVerificationError):
            await AuditVerifier(session).verify()


@pytest.mark.asyncio
async def test_audit_verifier_replay_window() -> None:
    await _record_many(AuditAction.CREATE_ROLE, AuditAction.UPDATE_ROLE, AuditAction.DELETE_ROLE)

    async with session_scope() as session:
        result = await AuditVerifier(session).verify(start_sequence=2)
    assert result.start_sequence == 2
    assert result.checked == 2


@pytest.mark.asyncio
async def test_persisted_entries_cannot_be_modified_through_the_orm() -> None:
    entries = await _record_many(AuditAction.CREATE_PERMISSION)

    with pytest.raises(ImmutableAuditEntryError):
        async with session_scope() as session:
            entry = await session.get(AuditLog, entries[0].id)
            entry.actor = "someone-else"
            await session.flush()

    with pytest.raises(ImmutableAuditEntryError):
        async with session_scope() as session:
            entry = await session.get(AuditLog, entries[0].id)
            await session.delete(entry)
            await session.flush()


@pytest.mark.asyncio
async def test_admin_commands_append_verifiable_chain() -> None:
    await seed_baseline()
    donor = await create_role("donor", ["cases:view_public"])
    user_id = uuid4()
    await assign(user_id, donor)
    await revoke(user_id, donor)

    async with session_scope() as session:
        entries = (await session.scalars(select(AuditLog).order_by(AuditLog.sequence))).all()
        result = await AuditVerifier(session).verify()

    assert result.checked == len(entries)
    assert [entry.action for entry in entries[-4:]] == ["create_role", "assign_permission", "assign_role", "revoke_role"]


@pytest.mark.asyncio
async def test_query_filters_and_paginates_newest_first() -> None:
    await _record_many(
        AuditAction.CREATE_ROLE,
        AuditAction.ASSIGN_ROLE,
        AuditAction.REVOKE_ROLE,
        AuditAction.ASSIGN_ROLE,
    )

    async with session_scope() as session:
        service = AuditService(session)
        page = await service.query(AuditLogFilters(category="role_assignment"), Pagination(limit=2, offset=0))
        warnings = await service.query(AuditLogFilters(severity=AuditSeverity.WARNING), Pagination())
        future = await service.query(
            AuditLogFilters(start=datetime.now(timezone.utc) + timedelta(hours=1)),
            Pagination(),
        )
        by_actor = await service.query(AuditLogFilters(actor=ADMIN_ACTOR, action="create_role"), Pagination())

    assert page.total == 3
    assert page.limit == 2
    assert [item.sequence for item in page.items] == [4, 3]
    assert [item.action for item in warnings.items] == ["revoke_role"]
    assert future.total == 0
    assert by_actor.total == 1


@pytest.mark.asyncio
async def test_query_limit_is_capped() -> None:
    async with session_scope() as session:
        page = await AuditService(session).query(AuditLogFilters(), Pagination(limit=10_000))
    assert page.limit == 200


def test_filters_reject_inverted_date_range() -> None:
    now = datetime.now(timezone.utc)
    with pytest.raises(ValueError):
        AuditLogFilters(start=now, end=now - timedelta(days=1))


@pytest.mark.asyncio
async def test_missing_actor_is_recorded_as_system() -> None:
    async with session_scope() as session:
        entry = await AuditService(session).record(None, AuditAction.CREATE_MODULE, "module", uuid4(), None)

    assert entry.actor == "system"
    assert entry.category == "module"
    assert entry.severity == "info"
    assert entry.detail == {}
