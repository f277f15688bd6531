"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Gift lifecycle and access-gate failures get their own subclasses so services
can raise them by name and routes never translate by hand.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization / gift state errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_ADMIN_REQUIRED = "E_ADMIN_REQUIRED"
    E_ACCESS_DENIED = "E_ACCESS_DENIED"
    E_ACCESS_DISABLED = "E_ACCESS_DISABLED"
    E_ACCESS_EXPIRED = "E_ACCESS_EXPIRED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_GIFT_NOT_FOUND = "E_GIFT_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"

    # Tombstoned (410)
    E_GIFT_DELETED = "E_GIFT_DELETED"

    # Validation / state machine errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_VALIDATION_FAILED = "E_VALIDATION_FAILED"
    E_INVALID_LINK = "E_INVALID_LINK"
    E_INVALID_TRANSITION = "E_INVALID_TRANSITION"
    E_INVALID_OPERATION = "E_INVALID_OPERATION"
    E_EXPIRED_GRANT = "E_EXPIRED_GRANT"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_ADMIN_REQUIRED: 403,
    ApiErrorCode.E_ACCESS_DENIED: 403,
    ApiErrorCode.E_ACCESS_DISABLED: 403,
    ApiErrorCode.E_ACCESS_EXPIRED: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_GIFT_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_GIFT_DELETED: 410,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_VALIDATION_FAILED: 400,
    ApiErrorCode.E_INVALID_LINK: 400,
    ApiErrorCode.E_INVALID_TRANSITION: 400,
    ApiErrorCode.E_INVALID_OPERATION: 400,
    ApiErrorCode.E_EXPIRED_GRANT: 400,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        details: Optional structured detail the client can act on
        status_code: HTTP status code (derived from code)
    """

    def __init__(
        self, code: ApiErrorCode, message: str, details: dict[str, Any] | list | None = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class FieldValidationError(ApiError):
    """Request content failed validation.

    ``errors`` is a list of ``{"field": ..., "message": ...}`` entries.
    """

    def __init__(self, errors: list[dict[str, str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(ApiErrorCode.E_VALIDATION_FAILED, message, details=errors)


class InvalidTransitionError(ApiError):
    """A lifecycle operation was attempted from the wrong status."""

    def __init__(self, current_status: str, expected_status: str | list[str]):
        self.current_status = current_status
        self.expected_status = expected_status
        expected = (
            expected_status if isinstance(expected_status, str) else " or ".join(expected_status)
        )
        super().__init__(
            ApiErrorCode.E_INVALID_TRANSITION,
            f"Gift is '{current_status}', expected '{expected}'",
            details={"current_status": current_status, "expected_status": expected_status},
        )


class InvalidOperationError(ApiError):
    """Operation not permitted on the gift in its present state."""

    def __init__(self, message: str):
        super().__init__(ApiErrorCode.E_INVALID_OPERATION, message)


class ExpiredGrantError(ApiError):
    """Access re-grant on an expired gift without resetting its window."""

    def __init__(
        self,
        message: str = "Gift has expired; re-enable with reset_expiry to start a new access window",
    ):
        super().__init__(ApiErrorCode.E_EXPIRED_GRANT, message)


class AccessDeniedError(ApiError):
    """Caller is not allowed to see the gift."""

    def __init__(self, message: str = "Access denied", intended_for_different_user: bool = False):
        self.intended_for_different_user = intended_for_different_user
        details = {"intended_for_different_user": True} if intended_for_different_user else None
        super().__init__(ApiErrorCode.E_ACCESS_DENIED, message, details=details)


class AccessDisabledError(ApiError):
    def __init__(self, message: str = "Access to this gift has been disabled"):
        super().__init__(ApiErrorCode.E_ACCESS_DISABLED, message)


class AccessExpiredError(ApiError):
    def __init__(self, message: str = "This gift has expired and is no longer accessible"):
        super().__init__(ApiErrorCode.E_ACCESS_EXPIRED, message)


class GoneError(ApiError):
    def __init__(self, message: str = "This gift has been permanently deleted"):
        super().__init__(ApiErrorCode.E_GIFT_DELETED, message)


class InvalidLinkError(ApiError):
    def __init__(
        self,
        message: str = "The link you used appears to be corrupted or invalid. "
        "Please request a new gift link.",
    ):
        super().__init__(ApiErrorCode.E_INVALID_LINK, message)
