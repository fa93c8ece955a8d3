"""
Custom exceptions for the Artist Booking Platform.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Booking lifecycle errors
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PAYMENT_SERVICE_ERROR = "PAYMENT_SERVICE_ERROR"
    PUSH_SERVICE_ERROR = "PUSH_SERVICE_ERROR"
    SIDE_EFFECT_FAILURE = "SIDE_EFFECT_FAILURE"


class PlatformError(Exception):
    """Base exception class for the booking platform."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(PlatformError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field_errors:
            details["field_errors"] = field_errors
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details or None,
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(PlatformError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            f"Booking {booking_id} not found",
            resource_type="booking",
            resource_id=booking_id,
            suggestions=["Check the booking ID", "View your booking history"],
            **kwargs
        )


class UserNotFoundError(NotFoundError):
    """Exception raised when a user is not found."""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            f"User {user_id} not found",
            resource_type="user",
            resource_id=user_id,
            **kwargs
        )


class AuthenticationError(PlatformError):
    """Exception raised when the acting user cannot be identified."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Check your credentials", "Login again"],
            **kwargs
        )


class AuthorizationError(PlatformError):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Access denied", required_permission: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if required_permission:
            details["required_permission"] = required_permission
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details=details or None,
            suggestions=kwargs.pop("suggestions", None) or ["Contact an administrator for access"],
            **kwargs
        )


class ForbiddenTransitionError(AuthorizationError):
    """Exception raised when the actor's role may not perform a transition."""

    def __init__(self, from_status: str, to_status: str, actor_role: str, **kwargs):
        self.from_status = from_status
        self.to_status = to_status
        self.actor_role = actor_role
        super().__init__(
            f"Role '{actor_role}' may not move a booking from {from_status} to {to_status}",
            details={"from_status": from_status, "to_status": to_status, "actor_role": actor_role},
            suggestions=["Ask the booking's artist or an administrator to perform this action"],
            **kwargs
        )


class BusinessLogicError(PlatformError):
    """Base exception for business logic violations."""
    pass


class InvalidTransitionError(BusinessLogicError):
    """Exception raised when a status change is not an edge of the state machine."""

    def __init__(self, from_status: str, to_status: str, **kwargs):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid booking transition: {from_status} -> {to_status}",
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"from_status": from_status, "to_status": to_status},
            **kwargs
        )


class ConcurrencyError(PlatformError):
    """Exception raised for concurrency-related issues."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.CONCURRENCY_CONFLICT,
            retry_after=retry_after,
            suggestions=["Reload the booking", "Wait a moment and retry"],
            **kwargs
        )


class ConflictError(ConcurrencyError):
    """Exception raised when a transition lost a race against another one."""

    def __init__(self, booking_id: str, expected_status: str, **kwargs):
        self.booking_id = booking_id
        self.expected_status = expected_status
        super().__init__(
            f"Booking {booking_id} is no longer {expected_status}; it was modified by another request",
            details={"booking_id": booking_id, "expected_status": expected_status},
            **kwargs
        )


class ExternalServiceError(PlatformError):
    """Exception raised for external service failures."""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None, **kwargs):
        details = {"service_name": service_name, "status_code": status_code}
        details.update(kwargs.pop("details", None) or {})
        kwargs.setdefault("error_code", ErrorCode.EXTERNAL_SERVICE_ERROR)
        super().__init__(
            f"{service_name} service error: {message}",
            details=details,
            suggestions=["Try again later", "Contact support if problem persists"],
            **kwargs
        )
        self.service_name = service_name


class PaymentServiceError(ExternalServiceError):
    """Exception raised for payment provider failures."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            "payment",
            message,
            error_code=ErrorCode.PAYMENT_SERVICE_ERROR,
            **kwargs
        )


class PushServiceError(ExternalServiceError):
    """Exception raised for push delivery failures."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            "push",
            message,
            error_code=ErrorCode.PUSH_SERVICE_ERROR,
            **kwargs
        )


class SideEffectFailure(PlatformError):
    """
    A post-commit side effect (payment, notification, audit) failed.

    Captured by the lifecycle service and recorded for reconciliation; it is
    never raised to the caller of a transition.
    """

    def __init__(self, effect: str, operation: str, booking_id: str, cause: BaseException, **kwargs):
        self.effect = effect
        self.operation = operation
        self.booking_id = booking_id
        self.cause = cause
        super().__init__(
            f"{effect} side effect '{operation}' failed for booking {booking_id}: {cause}",
            error_code=ErrorCode.SIDE_EFFECT_FAILURE,
            details={
                "effect": effect,
                "operation": operation,
                "booking_id": booking_id,
                "error_type": type(cause).__name__,
            },
            **kwargs
        )


class InvalidPushTokenError(PushServiceError):
    """Exception raised when the push service rejects a device token as unregistered."""

    def __init__(self, token: str, **kwargs):
        self.token = token
        super().__init__(
            "Device token is no longer registered",
            details={"token_suffix": token[-8:]},
            **kwargs
        )
