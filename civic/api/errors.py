"""Global error handlers mapping domain errors to stable JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from civic.domain.reports.errors import (
    AlreadyVoted,
    Forbidden,
    NotFound,
    PersistenceError,
    ReportsError,
    StorageError,
    Unauthenticated,
    ValidationError,
)
from civic.obs import logging as obs_logging

logger = logging.getLogger(__name__)

# Most specific classes first: Unauthenticated is a Forbidden
STATUS_BY_ERROR: tuple[tuple[type[ReportsError], int], ...] = (
    (Unauthenticated, status.HTTP_401_UNAUTHORIZED),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationError, 422),
    (AlreadyVoted, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: ReportsError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or obs_logging.current_request_id() or "unknown"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReportsError)
    async def reports_exc_handler(request: Request, exc: ReportsError):  # type: ignore[override]
        status_code = status_for(exc)
        if status_code >= 500:
            logger.warning("collaborator failure", extra={"code": exc.code, "error": exc.message})
        payload = {"detail": exc.code, "message": exc.message, "request_id": _request_id(request)}
        return JSONResponse(status_code=status_code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": _request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {
            "detail": ValidationError.code,
            "errors": jsonable_errors(exc),
            "request_id": _request_id(request),
        }
        return JSONResponse(status_code=422, content=payload)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": str(error.get("msg", "")), "type": str(error.get("type", ""))}
        for error in exc.errors()
    ]
