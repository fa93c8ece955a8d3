"""Middleware components for the Artist Booking Platform."""

from .error_handler import ErrorHandlerMiddleware, install_exception_handlers
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "LoggingMiddleware",
    "install_exception_handlers",
]
