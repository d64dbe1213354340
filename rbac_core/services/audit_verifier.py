"""Utilities for verifying the audit log hash chain."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.models.audit_log import AuditLog
from rbac_core.services.audit import (
    GENESIS_HASH,
    canonicalize_audit_entry_payload,
    compute_audit_entry_hash,
)


class AuditVerificationError(RuntimeError):
    """Raised when audit chain verification fails."""


@dataclass
class VerificationResult:
    """Result metadata returned after verification."""

    checked: int
    start_sequence: int
    end_sequence: int


class AuditVerifier:
    """Recomputes audit hashes to detect tampering, gaps or reordering."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def verify(
        self,
        *,
        start_sequence: int | None = None,
        end_sequence: int | None = None,
    ) -> VerificationResult:
        query = select(AuditLog).order_by(AuditLog.sequence.asc())
        if start_sequence is not None:
            query = query.where(AuditLog.sequence >= start_sequence)
        if end_sequence is not None:
            query = query.where(AuditLog.sequence <= end_sequence)

        entries = list((await self._session.scalars(query)).all())
        if not entries:
            return VerificationResult(checked=0, start_sequence=start_sequence or 0, end_sequence=end_sequence or 0)

        previous_hash = GENESIS_HASH
        previous_sequence = 0

        if entries[0].sequence > 1:
            anchor = await self._session.scalar(
                select(AuditLog).where(AuditLog.sequence == entries[0].sequence - 1)
            )
            if anchor is None:
                raise AuditVerificationError(f"Missing audit entry for sequence {entries[0].sequence - 1}")
            previous_hash = anchor.entry_hash
            previous_sequence = anchor.sequence

        checked = 0
        for entry in entries:
            expected = previous_sequence + 1
            if entry.sequence != expected:
                raise AuditVerificationError(
                    f"Sequence gap detected. Expected {expected}, found {entry.sequence}"
                )

            canonical_payload = canonicalize_audit_entry_payload(
                sequence=entry.sequence,
                hash_version=entry.hash_version,
                actor=entry.actor,
                action=entry.action,
                target_type=entry.target_type,
                target_id=entry.target_id,
                category=entry.category,
                severity=entry.severity,
                correlation_id=entry.correlation_id,
                detail=entry.detail,
                occurred_at=entry.occurred_at,
                previous_hash=previous_hash,
            )
            expected_hash = compute_audit_entry_hash(previous_hash, canonical_payload)

            if entry.previous_hash != previous_hash or entry.entry_hash != expected_hash:
                raise AuditVerificationError(
                    f"Hash mismatch at sequence {entry.sequence}: expected {expected_hash}, stored {entry.entry_hash}"
                )

            previous_hash = entry.entry_hash
            previous_sequence = entry.sequence
            checked += 1

        return VerificationResult(
            checked=checked,
            start_sequence=entries[0].sequence,
            end_sequence=entries[-1].sequence,
        )
