"""
Application error taxonomy.

Every error raised by services and routers is an ``AppError`` so the HTTP
layer renders one consistent shape::

    {"error": {"code": ..., "message": ..., "status": ..., "details": ...}}

Collection denial is deliberately rendered as ``NotFoundError`` by the
collection resolver; see ``anuncios.services.collections``.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

log = structlog.get_logger()


class AppError(HTTPException):
    """Base application error carrying a stable machine-readable code."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code or type(self).code
        self.message = message
        self.details = details or {}
        super().__init__(status_code=status_code or type(self).status_code, detail=message)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return {"error": body}


class UnauthenticatedError(AppError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class ValidationFailedError(AppError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class UpstreamFailureError(AppError):
    """Row store or session store unavailable. Not retried here."""

    code = "UPSTREAM_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, service: str = "Upstream service", **kwargs):
        super().__init__(f"{service} is unavailable", **kwargs)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, code=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _database_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    log.error("database.unavailable", path=request.url.path, error=str(exc.orig))
    return await _app_error_handler(request, UpstreamFailureError("Database"))


async def _redis_error_handler(request: Request, exc: RedisConnectionError) -> JSONResponse:
    log.error("redis.unavailable", path=request.url.path, error=str(exc))
    return await _app_error_handler(request, UpstreamFailureError("Session store"))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AppError envelope and upstream-failure mappings."""
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(OperationalError, _database_error_handler)
    app.add_exception_handler(RedisConnectionError, _redis_error_handler)
