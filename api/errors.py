"""Global exception handlers for FastAPI.

Every typed auth error maps to a status and a stable error code. Anything
untyped is logged with its traceback and answered with a generic 500.
"""

import logging

import psycopg2
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    ServiceUnavailableError,
    SessionRevokedError,
    TokenExpiredError,
    InvalidTokenError,
    UnauthorizedError,
)
from clients.email_client import EmailGatewayError
from clients.storage_client import StorageError

logger = logging.getLogger(__name__)


def auth_error_status(exc: AuthError) -> tuple[int, str]:
    """Map an auth error to (HTTP status, error code). Most specific first."""
    if isinstance(exc, TokenExpiredError):
        return 401, ErrorCodes.TOKEN_EXPIRED
    if isinstance(exc, SessionRevokedError):
        return 401, ErrorCodes.SESSION_REVOKED
    if isinstance(exc, InvalidTokenError):
        return 401, ErrorCodes.INVALID_TOKEN
    if isinstance(exc, InvalidCredentialsError):
        return 401, ErrorCodes.INVALID_CREDENTIALS
    if isinstance(exc, UnauthorizedError):
        return 401, ErrorCodes.NOT_AUTHENTICATED
    if isinstance(exc, ForbiddenError):
        return 403, ErrorCodes.FORBIDDEN
    if isinstance(exc, NotFoundError):
        return 404, ErrorCodes.NOT_FOUND
    if isinstance(exc, ConflictError):
        return 409, ErrorCodes.ALREADY_EXISTS
    if isinstance(exc, ServiceUnavailableError):
        return 503, ErrorCodes.SERVICE_UNAVAILABLE
    return 500, ErrorCodes.INTERNAL_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        status_code, code = auth_error_status(exc)
        headers = None

        if isinstance(exc, ServiceUnavailableError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
            message = "Service temporarily unavailable. Please retry."
        elif status_code == 500:
            logger.error(f"Unmapped auth error: {exc!r}")
            message = "An internal error occurred"
        else:
            message = str(exc)

        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=error_response(code, message, request).model_dump(mode="json"),
        )

    @app.exception_handler(psycopg2.OperationalError)
    async def database_error_handler(request: Request, exc: psycopg2.OperationalError):
        logger.error(f"Database unavailable: {exc}")
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(ServiceUnavailableError().retry_after_seconds)},
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "Service temporarily unavailable. Please retry.",
                request,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(EmailGatewayError)
    async def email_error_handler(request: Request, exc: EmailGatewayError):
        logger.error(f"Email delivery failed: {exc}")
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": "30"},
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "Email could not be sent. Please retry later.",
                request,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"File storage failed: {exc}")
        return JSONResponse(
            status_code=503,
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "File storage is unavailable. Please retry later.",
                request,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                request,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                request,
            ).model_dump(mode="json"),
        )
