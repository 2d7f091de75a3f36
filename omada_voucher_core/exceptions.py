"""
Consolidated exception system with error codes, context, and correlation support.

This module provides a unified exception hierarchy for the controller
integration core, with automatic logging and correlation ID tracking.

Controller failures are classified into a small taxonomy that callers act on:

- CredentialError: client id / secret / tenant rejected, never auto-retried
- TransientError: network, 5xx or timeout, retried by the calling layer
- RateLimitedError: controller asked us to back off for ``retry_after`` seconds
- ValidationError: malformed request, surfaced as-is
- NotFoundError: a referenced remote entity no longer exists
- AmbiguousOutcomeError: a non-idempotent write timed out with unknown outcome
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# Removed logger import to avoid circular dependency - calling code should handle logging

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    EXPIRED = "3004"

    # Business logic errors (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    AUTHENTICATION_FAILED = "4005"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    RATE_LIMITED = "5005"
    AMBIGUOUS_OUTCOME = "5006"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        # Add correlation ID if available
        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        # Log the error (using lazy import to avoid circular dependencies)
        self._log_error()

        super().__init__(message)

    @property
    def error_type(self) -> str:
        """Name of the concrete error kind, e.g. ``CredentialError``."""
        return type(self).__name__

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_type": self.error_type,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "type": self.error_type,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Repository layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Malformed input, locally or as judged by the controller. Never retried."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


# ==================== CONTROLLER TAXONOMY ====================


class ControllerError(BaseError):
    """Base for failures talking to the wireless controller."""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        status_code: int = 502,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class CredentialError(ControllerError):
    """Controller rejected the client id / secret / tenant, or the access token."""

    def __init__(
        self,
        message: str = "Invalid controller credentials",
        token_rejected: bool = False,
        error_code: ErrorCode = ErrorCode.AUTHENTICATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.token_rejected = token_rejected
        context["token_rejected"] = token_rejected
        super().__init__(
            message,
            error_code=error_code,
            status_code=401,
            cause=cause,
            **context,
        )


class CredentialNotFoundError(CredentialError):
    """No usable controller credential is configured."""

    def __init__(self, message: str = "Controller credentials are not configured", **context):
        super().__init__(message, error_code=ErrorCode.CONFIGURATION_ERROR, **context)


class TransientError(ControllerError):
    """Network failure, timeout or 5xx. Eligible for caller-controlled retry."""

    retryable = True

    def __init__(self, message: str, cause: Optional[Exception] = None, **context):
        super().__init__(
            message,
            error_code=ErrorCode.CONNECTION_ERROR,
            status_code=503,
            cause=cause,
            **context,
        )


class RateLimitedError(ControllerError):
    """Controller asked for a back-off; ``retry_after`` is honored verbatim."""

    retryable = True

    def __init__(self, message: str, retry_after: float, cause: Optional[Exception] = None, **context):
        self.retry_after = retry_after
        context["retry_after"] = retry_after
        super().__init__(
            message,
            error_code=ErrorCode.RATE_LIMITED,
            status_code=429,
            cause=cause,
            **context,
        )


class NotFoundError(ControllerError):
    """A referenced remote site / voucher group no longer exists."""

    def __init__(self, message: str, resource_type: Optional[str] = None, **context):
        if resource_type:
            context["resource_type"] = resource_type
        super().__init__(message, error_code=ErrorCode.NOT_FOUND, status_code=404, **context)


class AmbiguousOutcomeError(ControllerError):
    """A non-idempotent write failed in a way that leaves its outcome unknown."""

    def __init__(self, message: str, operation: str, cause: Optional[Exception] = None, **context):
        context["operation"] = operation
        super().__init__(
            message,
            error_code=ErrorCode.AMBIGUOUS_OUTCOME,
            status_code=504,
            cause=cause,
            **context,
        )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
