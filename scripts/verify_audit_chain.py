#!/usr/bin/env python
"""CLI utility to verify the RBAC audit log hash chain."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rbac_core.core.database import session_scope
from rbac_core.services.audit_verifier import AuditVerificationError, AuditVerifier, VerificationResult


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify audit log hash chain.")
    parser.add_argument("--start-sequence", type=int, default=None, help="Optional starting sequence (inclusive).")
    parser.add_argument("--end-sequence", type=int, default=None, help="Optional ending sequence (inclusive).")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args(argv)


async def _verify(start_sequence: Optional[int], end_sequence: Optional[int]) -> VerificationResult:
    async with session_scope() as session:
        return await AuditVerifier(session).verify(start_sequence=start_sequence, end_sequence=end_sequence)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(_verify(args.start_sequence, args.end_sequence))
    except AuditVerificationError as exc:
        logging.error("Audit verification failed: %s", exc)
        return 1

    logging.info(
        "Audit chain verified successfully from sequence %s to %s (%s entries checked)",
        result.start_sequence,
        result.end_sequence,
        result.checked,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
