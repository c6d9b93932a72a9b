"""Custom exception hierarchy for casegate."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"

    # Authorization
    FORBIDDEN = "FORBIDDEN"
    PROFILE_COMPLETION_REQUIRED = "PROFILE_COMPLETION_REQUIRED"

    # Request / resource errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"

    # Server-side errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CaseGateException(Exception):
    """
    Base exception for all casegate errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to the error envelope returned to clients.

        Returns:
            ``{"status": "error", "message": ..., "error": {code, message, details}}``
        """
        error: Dict[str, Any] = {
            "code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        return {
            "status": "error",
            "message": self.message,
            "error": error,
        }


class AuthenticationError(CaseGateException):
    """Request lacks authentication credentials."""

    def __init__(self, message: str = "Authentication token not provided"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class InvalidTokenError(CaseGateException):
    """Token is malformed, has a bad signature, or no longer matches the account."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(
            message,
            ErrorCode.INVALID_TOKEN,
            status_code=401,
        )


class SessionExpiredError(CaseGateException):
    """Session ended through inactivity or token expiry."""

    def __init__(self, message: str = "Session expired", inactive_minutes: Optional[int] = None):
        details = {"inactive_minutes": inactive_minutes} if inactive_minutes is not None else {}
        super().__init__(
            message,
            ErrorCode.SESSION_EXPIRED,
            status_code=401,
            details=details,
        )


class InvalidCredentialsError(CaseGateException):
    """Email/password pair rejected. Deliberately vague about which part was wrong."""

    def __init__(self):
        super().__init__(
            "Invalid email or password",
            ErrorCode.INVALID_CREDENTIALS,
            status_code=401,
        )


class AccountDisabledError(CaseGateException):
    """Account exists but has been deactivated by an administrator."""

    def __init__(self, message: str = "Account is disabled"):
        super().__init__(
            message,
            ErrorCode.ACCOUNT_DISABLED,
            status_code=403,
        )


class ForbiddenError(CaseGateException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
            details=details,
        )


class ProfileCompletionRequiredError(CaseGateException):
    """User must change the temporary password and complete the profile first."""

    def __init__(self, is_first_login: bool):
        super().__init__(
            "Profile must be completed before continuing",
            ErrorCode.PROFILE_COMPLETION_REQUIRED,
            status_code=403,
            details={"is_first_login": is_first_login, "requires_profile_completion": True},
        )


class ValidationError(CaseGateException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        merged = dict(details or {})
        if field:
            merged["field"] = field
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=merged
        )


class NotFoundError(CaseGateException):
    """Resource not found in database."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type.capitalize()} not found: {resource_id}",
            ErrorCode.NOT_FOUND,
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class ConflictError(CaseGateException):
    """Request conflicts with existing state (e.g. duplicate email)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details={"field": field} if field else None,
        )


class RateLimitedError(CaseGateException):
    """Client exceeded the allowed number of attempts."""

    def __init__(self, retry_after: float):
        super().__init__(
            "Too many requests",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"retry_after": round(retry_after, 1)},
        )

