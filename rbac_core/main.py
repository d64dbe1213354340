"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from rbac_core.api.error_handlers import register_exception_handlers
from rbac_core.api.routers import get_api_router
from rbac_core.core.config import AppSettings, get_settings
from rbac_core.core.database import session_scope
from rbac_core.core.logging import configure_logging
from rbac_core.services.admin import RoleAdminService
from rbac_core.services.invalidation import close_invalidation_signal
from rbac_core.services.resolver import set_permission_resolver


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: D401
    """Application lifespan context for startup/shutdown hooks."""

    settings = get_settings()
    async with session_scope() as session:
        service = RoleAdminService(session)
        await service.ensure_baseline_permissions(settings.baseline_permissions)
        await service.ensure_system_roles(settings.system_roles)

    yield

    set_permission_resolver(None)
    await close_invalidation_signal()


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Application factory."""

    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Donation Platform RBAC Core",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.include_router(get_api_router())
    return app


app = create_app()
