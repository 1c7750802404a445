"""
Error kinds raised by the order back office.

Each error carries the HTTP status the API layer answers with, so the
handlers never have to inspect message text to pick a status code.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base class for all expected failures."""

    status_code = 500
    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(StorefrontError):
    status_code = 401
    kind = "authentication"


class AuthorizationError(StorefrontError):
    status_code = 403
    kind = "forbidden"


class NotFoundError(StorefrontError):
    status_code = 404
    kind = "not_found"


class InvalidStateError(StorefrontError):
    """The order is in a status that forbids the requested transition.

    ``reason`` is a short tag: ``terminal-shipped``, ``already-cancelled``,
    ``already-deleted`` or ``refund-in-progress``.
    """

    status_code = 409
    kind = "invalid_state"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


class NoPaymentFoundError(StorefrontError):
    status_code = 422
    kind = "no_payment_found"


class RequestValidationFailed(StorefrontError):
    status_code = 400
    kind = "invalid_request"


class UpdateFailedError(StorefrontError):
    status_code = 500
    kind = "update_failed"


class RefundFailedError(StorefrontError):
    status_code = 502
    kind = "refund_failed"


class ConfigurationError(StorefrontError):
    status_code = 500
    kind = "configuration"
