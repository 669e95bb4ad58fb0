"""Error Hierarchy — typed, categorized errors for every storefront failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Codes are stable; clients branch on code, never on message
    - Domain errors are 4xx; payment/infrastructure errors are 402/409/503
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Errors are values first: core checks return them and services wrap them
      in an Outcome; only the HTTP boundary raises them
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    PAYMENT = "payment"
    CONFLICT = "conflict"
    DATABASE = "database"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    order_id: str | None = None
    attempt_id: str | None = None
    charge_id: str | None = None
    checkout_step: str | None = None
    debug_info: dict[str, Any] | None = None


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "order_id": self.context.order_id,
                    "attempt_id": self.context.attempt_id,
                    "checkout_step": self.context.checkout_step,
                },
            }
        }


# ─── Identity & Access (401/403) ─────────────────────────────────

class AuthenticationFailedError(StorefrontError):
    """Email/password pair did not match an account."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Invalid email or password",
            "AUTHENTICATION_FAILED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class InvalidSessionError(StorefrontError):
    """Session token is malformed, unsigned, or tampered with."""
    def __init__(self, reason: str = "invalid", context: ErrorContext | None = None):
        super().__init__(
            "Session token is not valid",
            "INVALID_SESSION", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )
        self.reason = reason


class UnauthenticatedError(StorefrontError):
    """Operation requires a signed-in user and none is present."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "You must be signed in to do that",
            "UNAUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class ForbiddenError(StorefrontError):
    """Actor is neither the owner nor holds a required permission."""
    def __init__(
        self, action: str, required: list[str] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"You don't have permission to {action}",
            "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )
        self.action = action
        self.required = required or []


# ─── Domain Errors (400-level) ───────────────────────────────────

class ResourceNotFoundError(StorefrontError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class DomainValidationError(StorefrontError):
    """Input violates a business rule (password mismatch, expired reset token, ...)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class EmptyCartError(StorefrontError):
    """Checkout requested with nothing in the cart."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Your cart is empty",
            "EMPTY_CART", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )


# ─── Payment & Checkout ──────────────────────────────────────────

class PaymentDeclinedError(StorefrontError):
    """Processor definitively refused the charge; no money moved."""
    def __init__(
        self, message: str = "Your payment was declined",
        decline_code: str | None = None, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "PAYMENT_DECLINED", ErrorCategory.PAYMENT,
            ErrorSeverity.WARNING, context, 402,
        )
        self.decline_code = decline_code


class PaymentGatewayUnavailableError(StorefrontError):
    """Processor could not be reached or answered unclearly.

    ambiguous=True means the charge may have happened remotely (timeout,
    dropped connection); such attempts are left for reconciliation.
    """
    def __init__(
        self, message: str, ambiguous: bool = False,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "PAYMENT_GATEWAY_UNAVAILABLE", ErrorCategory.PAYMENT,
            ErrorSeverity.CRITICAL if ambiguous else ErrorSeverity.ERROR,
            context, 503,
        )
        self.ambiguous = ambiguous

    def to_response(self) -> dict:
        body = super().to_response()
        body["error"]["ambiguous"] = self.ambiguous
        return body


class ConcurrentCheckoutConflictError(StorefrontError):
    """Another checkout for the same user got there first."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENT_CHECKOUT_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Infrastructure Errors (500-level) ───────────────────────────

class DatabaseError(StorefrontError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
