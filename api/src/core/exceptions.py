"""Domain error taxonomy.

Every error raised by the access engine carries a stable machine-readable
``code`` and an HTTP ``status_code`` used by the application-level handler in
``src.main``. Anything that is not an ``AccessError`` is treated as an internal
failure and rendered as a generic 500.
"""

from typing import Any

from fastapi import status


class AccessError(Exception):
    """Base error for access, enrollment and approval operations."""

    code = "access_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serializable body fragment for HTTP responses."""
        return {"code": self.code, "message": self.message, **self.details}


class DenialReason:
    """Why an entitlement was denied."""

    SUBSCRIPTION_REQUIRED = "subscription_required"
    ENTERPRISE_ACCESS_REQUIRED = "enterprise_access_required"
    ACCOUNT_INACTIVE = "account_inactive"


class EntitlementDeniedError(AccessError):
    """User has no entitlement to the course."""

    code = "entitlement_denied"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "No access to this course"

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message, reason=reason)


class CapacityExceededError(AccessError):
    """Session has no free seats."""

    code = "capacity_exceeded"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Session is full"


class AlreadyEnrolledError(AccessError):
    """User already holds an active enrollment in the session."""

    code = "already_enrolled"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already enrolled in this session"


class NotConfirmedError(AccessError):
    """Enrollment is not in the Confirmed state."""

    code = "not_confirmed"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Enrollment is not confirmed"


class NotPendingError(AccessError):
    """Approval request is not in the state the transition requires."""

    code = "not_pending"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Approval request is not pending"


class ForbiddenError(AccessError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to perform this action"


class NotFoundError(AccessError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ValidationError(AccessError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid request"


class CapacityContentionError(Exception):
    """Reservation gave up after repeated compare-and-swap conflicts.

    Storage-level failure, rendered as an internal error.
    """
