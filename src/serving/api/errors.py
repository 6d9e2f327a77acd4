"""
API Exception Handlers

Every failure leaves the API as ``{"error": "<message>"}`` with a 4xx/5xx
status. Internal details (stack traces, SQL) are logged, never returned.
"""

from typing import Any, Dict, List

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.exceptions import AppError

logger = structlog.get_logger(__name__)

INTERNAL_ERROR = "Internal server error"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _field_name(error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
    return ".".join(loc)


def validation_message(errors: List[Dict[str, Any]]) -> str:
    """
    Collapse pydantic errors into one message.

    Missing fields are listed together; otherwise the first invalid field
    is named.
    """
    if any(error.get("type") == "json_invalid" for error in errors):
        return "Invalid JSON body"

    missing = [error for error in errors if error.get("type") == "missing"]
    if missing:
        names = [_field_name(error) for error in missing]
        if not any(names):
            return "Request body is required"
        return f"Missing required fields: {', '.join(name for name in names if name)}"

    if errors:
        return f"Invalid value for field: {_field_name(errors[0])}"
    return "Invalid request"


def integrity_status(error: IntegrityError) -> int:
    """409 for unique violations, 400 for other constraint failures."""
    detail = str(error.orig).lower()
    if "unique" in detail or "duplicate key" in detail:
        return 409
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = validation_message(list(exc.errors()))
    logger.warning("Invalid request", path=request.url.path, error=message)
    return error_response(400, message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    status_code = integrity_status(exc)
    logger.warning(
        "Constraint violation",
        path=request.url.path,
        status_code=status_code,
        error=str(exc.orig),
    )
    if status_code == 409:
        return error_response(409, "A record with this value already exists")
    return error_response(400, "Request references a missing or invalid record")


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return error_response(500, INTERNAL_ERROR)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return error_response(500, INTERNAL_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on an application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
