"""Router registrations."""

from fastapi import APIRouter

from rbac_core.api.routers import assignments, audit, authorization, health, menu, permissions, roles


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router, tags=["health"])
    router.include_router(roles.router, prefix="/api/v1/roles", tags=["roles"])
    router.include_router(permissions.router, prefix="/api/v1/permissions", tags=["permissions"])
    router.include_router(permissions.modules_router, prefix="/api/v1/modules", tags=["modules"])
    router.include_router(assignments.router, prefix="/api/v1/assignments", tags=["assignments"])
    router.include_router(authorization.router, prefix="/api/v1", tags=["authorization"])
    router.include_router(menu.router, prefix="/api/v1/menu", tags=["menu"])
    router.include_router(audit.router, prefix="/api/v1/audit-log", tags=["audit"])
    return router
