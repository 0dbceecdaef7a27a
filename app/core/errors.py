"""
Central error handling for the HR lifecycle backend

All failures leave the API in the response envelope:
{"success": false, "error": {"message": ..., "code": ...}}
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import AppError, InternalError
from app.core.logging import get_logger
from app.schemas.common import ApiResponse

logger = get_logger(__name__)

_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION",
    status.HTTP_401_UNAUTHORIZED: "AUTHENTICATION",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "VALIDATION",
    status.HTTP_409_CONFLICT: "CONFLICT",
}


def _envelope(status_code: int, message: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.fail(message=message, code=code).to_dict(),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Map domain errors to the envelope

    InternalError is logged with full context; its message is always the generic one.
    """
    if isinstance(exc, InternalError):
        logger.error(
            "Internal error on %s %s: %s details=%s",
            request.method, request.url.path, exc.message, exc.details,
        )
        return _envelope(exc.status_code, InternalError.default_message, exc.code)

    logger.info(
        "Request rejected: path=%s code=%s message=%s",
        request.url.path, exc.code, exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _envelope(exc.status_code, exc.message, exc.code, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException (raised by FastAPI itself, e.g. missing bearer header or unknown route)
    """
    code = _HTTP_STATUS_CODES.get(exc.status_code, "ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _envelope(exc.status_code, message, code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError

    Does not leak field-level details in production.
    """
    if settings.is_production:
        return _envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error: Invalid request data", "VALIDATION")

    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ()) if loc != "body")
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error: " + "; ".join(parts),
        "VALIDATION",
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store/connectivity failures never expose driver detail to the caller."""
    logger.error(
        "Database error on %s %s", request.method, request.url.path, exc_info=exc,
    )
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.default_message, InternalError.code)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions
    """
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.default_message, InternalError.code)
