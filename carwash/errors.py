"""
Error kinds and the central handlers that turn them into the error envelope.

CRUD and dependency code raises the `AppError` subclasses below; anything
else that escapes a route is normalised here as well.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from tortoise.exceptions import (
    DBConnectionError,
    DoesNotExist,
    IntegrityError,
    OperationalError,
)

from carwash import settings
from carwash.responses import ErrorEnvelope


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(
        self,
        detail: str | None = None,
        details: list[str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )
        self.details = details


class InvalidInput(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input data"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Record not found"


class Conflict(AppError):
    # Clients of the booking API expect 400 for a taken slot or a bad transition.
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request conflicts with the current state"


class TooManyRequests(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests, please try again later."

    def __init__(self, detail: str | None, retry_after: int) -> None:
        super().__init__(detail, headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class Unavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Database temporarily unavailable"


def _envelope(
    request: Request,
    status_code: int,
    error: str,
    details: list[str] | str | None = None,
    headers: dict[str, str] | None = None,
    retry_after: int | None = None,
) -> JSONResponse:
    body = ErrorEnvelope(
        error=error, details=details, retry_after=retry_after, path=request.url.path
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
        headers=headers,
    )


def format_validation_error(err: dict) -> str:
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _envelope(
        request,
        exc.status_code,
        str(exc.detail),
        getattr(exc, "details", None),
        getattr(exc, "headers", None),
        retry_after=getattr(exc, "retry_after", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [format_validation_error(e) for e in exc.errors()]
    return _envelope(request, status.HTTP_400_BAD_REQUEST, "Validation failed", details)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(
        "Integrity error on {} {}: {}", request.method, request.url.path, exc
    )
    return _envelope(request, Conflict.status_code, "Duplicate field value entered")


async def does_not_exist_handler(request: Request, exc: DoesNotExist) -> JSONResponse:
    return _envelope(request, status.HTTP_404_NOT_FOUND, "Record not found")


async def db_unavailable_handler(
    request: Request, exc: DBConnectionError | OperationalError
) -> JSONResponse:
    logger.error(
        "Database unavailable on {} {}: {}", request.method, request.url.path, exc
    )
    return _envelope(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        Unavailable.default_detail,
        "Please try again later",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        "Unhandled error on {} {}", request.method, request.url.path
    )
    details = None
    if not settings.IS_PRODUCTION:
        details = "".join(traceback.format_exception(exc))
    return _envelope(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", details
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DoesNotExist, does_not_exist_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DBConnectionError, db_unavailable_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, db_unavailable_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
