"""Exception handlers for the FastAPI app."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rbac_core.services.errors import (
    DuplicateNameError,
    NotFoundError,
    ProtectedEntityError,
    RbacError,
    StoreUnavailableError,
    ValidationError,
)

LOGGER = logging.getLogger("rbac_core.api.errors")

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (DuplicateNameError, 409),
    (ProtectedEntityError, 403),
    (ValidationError, 422),
    (StoreUnavailableError, 503),
)


def _error_response(status_code: int, exc: RbacError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RbacError)
    async def rbac_error_handler(request: Request, exc: RbacError) -> JSONResponse:  # noqa: WPS430
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                if status_code >= 500:
                    LOGGER.error(
                        "request_failed_store_unavailable",
                        extra={"path": request.url.path, "code": exc.code, "error": str(exc)},
                    )
                return _error_response(status_code, exc)
        return _error_response(400, exc)
