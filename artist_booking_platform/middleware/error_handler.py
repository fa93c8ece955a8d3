"""
Error handling middleware for the Artist Booking Platform.

Every error leaves the API as ``{"error": {...}, "error_id", "timestamp"}``.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    PlatformError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    ConcurrencyError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR_CODE = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.PAYMENT_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.PUSH_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: PlatformError) -> int:
    """HTTP status for a platform error."""
    return STATUS_BY_ERROR_CODE.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_body(exc: PlatformError, error_id: str) -> Dict[str, Any]:
    return {
        "error": exc.to_dict(),
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns exceptions escaping the routes into structured JSON responses."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            self._log_error(request, exc, error_id)
            return self._handle_exception(exc, error_id)

    def _handle_exception(self, exc: Exception, error_id: str) -> JSONResponse:
        if isinstance(exc, PlatformError):
            return self._handle_platform_error(exc, error_id)
        elif isinstance(exc, IntegrityError):
            return self._handle_integrity_error(exc, error_id)
        elif isinstance(exc, (OperationalError, SQLTimeoutError)):
            return self._handle_database_error(exc, error_id)
        return self._handle_unexpected_error(exc, error_id)

    def _handle_platform_error(self, exc: PlatformError, error_id: str) -> JSONResponse:
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        if isinstance(exc, AuthenticationError):
            headers["WWW-Authenticate"] = "Bearer"

        return JSONResponse(
            status_code=status_code_for(exc),
            content=error_body(exc, error_id),
            headers=headers
        )

    def _handle_integrity_error(self, exc: IntegrityError, error_id: str) -> JSONResponse:
        error_message = str(exc.orig) if hasattr(exc, 'orig') else str(exc)

        if "foreign key" in error_message.lower():
            platform_error = ValidationError(
                "Referenced user does not exist",
                details={"constraint_type": "foreign_key"}
            )
        elif "check constraint" in error_message.lower():
            platform_error = ValidationError(
                "Booking values violate a constraint",
                details={"constraint_type": "check"}
            )
        else:
            platform_error = ValidationError(
                "Data integrity constraint violation",
                details={"constraint_type": "unknown"}
            )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(platform_error, error_id)
        )

    def _handle_database_error(self, exc: Exception, error_id: str) -> JSONResponse:
        platform_error = ExternalServiceError(
            "database",
            "Database service temporarily unavailable",
            details={"error_type": type(exc).__name__}
        )

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body(platform_error, error_id),
            headers={"Retry-After": "30"}
        )

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        platform_error = PlatformError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )
        response_data = error_body(platform_error, error_id)

        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )

    def _log_error(self, request: Request, exc: Exception, error_id: str):
        context = {
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, PlatformError):
            context.update(error_code=exc.error_code.value, details=exc.details)

            client_errors = (
                ValidationError, NotFoundError, AuthenticationError,
                AuthorizationError, BusinessLogicError, ConcurrencyError
            )
            if isinstance(exc, client_errors):
                logger.warning(f"Client error [{error_id}]: {exc.message}", extra=context)
            else:
                logger.error(f"System error [{error_id}]: {exc.message}", extra=context)
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                exc_info=exc,
                extra={**context, "error_type": type(exc).__name__}
            )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters in the platform error format."""
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        field_errors.setdefault(field_path or "body", []).append(error["msg"])

    validation_error = ValidationError("Request validation failed", field_errors=field_errors)
    error_id = str(uuid4())
    logger.warning(
        f"Client error [{error_id}]: {validation_error.message}",
        extra={"error_id": error_id, "path": request.url.path, "details": validation_error.details}
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(validation_error, error_id)
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
