"""
Exception handlers - Render every failure as {success: false, message}.

Domain exceptions carry no HTTP knowledge; the status code for each class
is decided here.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.exceptions import (
    AuthenticationError,
    AuthError,
    ConflictError,
    DeliveryError,
    ExpiredError,
    LockedError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AuthError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    ExpiredError: status.HTTP_400_BAD_REQUEST,
    RateLimitedError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    LockedError: status.HTTP_423_LOCKED,
    DeliveryError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: AuthError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_400_BAD_REQUEST


def error_body(message: str) -> dict[str, object]:
    return {"success": False, "message": message}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=error_body(exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400, with the field messages joined."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(", ".join(messages) or "Invalid request"),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the handlers on an application."""
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
