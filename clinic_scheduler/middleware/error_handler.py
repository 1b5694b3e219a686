"""Exception handlers rendering the scheduler's error envelope."""

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_scheduler.core.exceptions import AppException, SchedulingException
from clinic_scheduler.database import StoreUnavailable
from clinic_scheduler.scheduling.errors import StoreUnavailableError

logger = structlog.get_logger(__name__)

HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def error_response(
    request: Request,
    status_code: int,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Build the error envelope shared by every handler.

    Every body carries ``error``, ``code``, ``message``, ``details``,
    ``retryable`` and ``path``; missing keys get neutral defaults.
    """
    content = {"details": None, "retryable": False, **payload, "path": str(request.url)}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def scheduling_exception_handler(
    request: Request,
    exc: SchedulingException,
) -> JSONResponse:
    """
    Render a scheduling error value returned by the core.

    Args:
        request: Request object
        exc: Exception wrapping the error value

    Returns:
        JSON error response with the error's code and structured details
    """
    return error_response(request, exc.status_code, exc.error.to_payload())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render identity, permission and lookup failures."""
    return error_response(
        request,
        exc.status_code,
        {"error": type(exc).__name__, "code": exc.code, "message": exc.message},
    )


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    """
    Render a store timeout on a read path as a retryable 503.

    Args:
        request: Request object
        exc: Store failure

    Returns:
        JSON error response
    """
    logger.warning("store_unavailable_response", path=request.url.path, error=str(exc))
    error = StoreUnavailableError("Scheduling store unavailable, retry later")
    return error_response(request, error.status_code, error.to_payload())


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render framework HTTP errors, keeping their headers (``WWW-Authenticate``)."""
    return error_response(
        request,
        exc.status_code,
        {
            "error": "HTTPException",
            "code": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            "message": exc.detail,
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Render request validation failures.

    Malformed bodies, unparseable dates and broken profile invariants all land
    here before any scheduling rule runs.
    """
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {
            "error": "ValidationError",
            "code": "validation_error",
            "message": "Request validation failed",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # model validators leave the raised ValueError in ctx
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure and hide internals from the caller."""
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {
            "error": "InternalServerError",
            "code": "internal_error",
            "message": "An unexpected error occurred",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers, most specific first."""
    app.add_exception_handler(SchedulingException, scheduling_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)
