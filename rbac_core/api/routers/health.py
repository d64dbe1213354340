"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.api.dependencies import get_db_session
from rbac_core.services.store import translate_store_errors

router = APIRouter()


@router.get("/healthz", summary="Liveness check")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Readiness check; 503 when the RBAC store is unreachable")
async def readiness_check(session: AsyncSession = Depends(get_db_session)) -> dict[str, str]:
    with translate_store_errors("readiness_check"):
        await session.execute(text("SELECT 1"))
    return {"status": "ready"}
