"""
Domain Errors — Typed failures raised by the payment and case services.
Each error knows its HTTP status and a stable error code; main.py renders
them as ErrorResponse bodies.
"""
from typing import Optional


class PaymentSystemError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code: int = 400
    error_code: str = "PAYMENT_SYSTEM_ERROR"
    retryable: bool = False

    def __init__(self, message: str, *, rule: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.rule = rule


# ─── Input validation ───────────────────────────────────────────────

class ValidationError(PaymentSystemError):
    """Bad amount, currency or missing fields. Nothing was created."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    error_code = "INVALID_AMOUNT"


class CaseAlreadyPaid(ValidationError):
    status_code = 409
    error_code = "CASE_ALREADY_PAID"


# ─── Lookups & access ───────────────────────────────────────────────

class CaseNotFound(PaymentSystemError):
    status_code = 404
    error_code = "CASE_NOT_FOUND"


class PaymentNotFound(PaymentSystemError):
    status_code = 404
    error_code = "PAYMENT_NOT_FOUND"


class NotAuthenticated(PaymentSystemError):
    status_code = 401
    error_code = "NOT_AUTHENTICATED"


class PermissionDenied(PaymentSystemError):
    status_code = 403
    error_code = "PERMISSION_DENIED"


# ─── Gateway ────────────────────────────────────────────────────────

class GatewayUnavailable(PaymentSystemError):
    """Transport failure, timeout or gateway-side 5xx. Safe to retry."""
    status_code = 503
    error_code = "GATEWAY_UNAVAILABLE"
    retryable = True


class InvalidCredentials(PaymentSystemError):
    """Gateway rejected our API keys. An operator has to fix configuration."""
    status_code = 502
    error_code = "GATEWAY_CREDENTIALS_INVALID"


# ─── Callback verification ──────────────────────────────────────────

class SignatureInvalid(PaymentSystemError):
    error_code = "SIGNATURE_INVALID"


class UnknownOrderReference(PaymentSystemError):
    status_code = 404
    error_code = "UNKNOWN_ORDER_REFERENCE"


# ─── State machine ──────────────────────────────────────────────────

class InvalidTransition(PaymentSystemError):
    """Requested status change is not allowed. `rule` names the violated rule."""
    status_code = 409
    error_code = "INVALID_TRANSITION"


# ─── Case numbering ─────────────────────────────────────────────────

class AllocationFailure(PaymentSystemError):
    status_code = 503
    error_code = "CASE_NUMBER_ALLOCATION_FAILED"
    retryable = True


# ─── Throttling ─────────────────────────────────────────────────────

class RateLimited(PaymentSystemError):
    status_code = 429
    error_code = "RATE_LIMITED"
    retryable = True

    def __init__(self, message: str, *, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after
