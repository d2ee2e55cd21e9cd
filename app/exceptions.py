"""
Custom Exception Classes for ContentFlow

This module defines the error taxonomy of the content-workflow engine.
Every ContentFlowError carries an HTTP status code and a machine-readable
error code so the exception handlers can produce a consistent envelope.

Channel delivery failures are deliberately outside this hierarchy: the
publish coordinator records them per channel instead of raising them.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the error envelope."""

    AUTH_FAILED = "AUTH_FAILED"
    ACCESS_DENIED = "ACCESS_DENIED"
    NO_ORGANIZATION_CONTEXT = "NO_ORGANIZATION_CONTEXT"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    NOT_APPROVED = "NOT_APPROVED"
    RESOURCE_LOCKED = "RESOURCE_LOCKED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ContentFlowError(Exception):
    """Base exception class for all workflow-engine errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authentication & Tenancy Exceptions
# ============================================================================


class AuthenticationError(ContentFlowError):
    """Raised when the caller cannot be identified"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED, error_code=ErrorCode.AUTH_FAILED)


class AccessDeniedError(ContentFlowError):
    """Raised when the principal lacks membership or role for an action"""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.ACCESS_DENIED,
            details=details,
        )


class NoOrganizationContextError(ContentFlowError):
    """Raised when no active organization membership can be resolved"""

    def __init__(self, message: str = "No active organization membership for this user"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.NO_ORGANIZATION_CONTEXT,
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(ContentFlowError):
    """Base class for resource not found errors"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class OrganizationNotFoundError(ResourceNotFoundError):
    def __init__(self, organization_id: Any | None = None):
        super().__init__(resource_type="Organization", resource_id=organization_id)


class IdeaNotFoundError(ResourceNotFoundError):
    def __init__(self, idea_id: Any | None = None):
        super().__init__(resource_type="Idea", resource_id=idea_id)


class DraftNotFoundError(ResourceNotFoundError):
    def __init__(self, draft_id: Any | None = None):
        super().__init__(resource_type="ContentDraft", resource_id=draft_id)


class DeliveryPlanNotFoundError(ResourceNotFoundError):
    def __init__(self, plan_id: Any | None = None):
        super().__init__(resource_type="DeliveryPlan", resource_id=plan_id)


# ============================================================================
# Validation & Workflow Exceptions
# ============================================================================


class ValidationError(ContentFlowError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=error_details,
        )


class DuplicateResourceError(ContentFlowError):
    """Raised when attempting to create a duplicate resource"""

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.DUPLICATE_RESOURCE,
            details={"resource_type": resource_type, "field": field, "value": value},
        )


class InvalidTransitionError(ContentFlowError):
    """Raised when a transition is not defined for the current state"""

    def __init__(self, resource_type: str, current_status: str, target: str):
        super().__init__(
            message=f"Cannot apply '{target}' to {resource_type} in status '{current_status}'",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"resource_type": resource_type, "current_status": current_status, "target": target},
        )


class ConcurrentModificationError(ContentFlowError):
    """Raised when a conditional update finds the row changed underneath it"""

    def __init__(self, resource_type: str, resource_id: Any, expected_status: str | None = None):
        details: dict[str, Any] = {"resource_type": resource_type, "resource_id": resource_id}
        if expected_status is not None:
            details["expected_status"] = expected_status
        super().__init__(
            message=f"{resource_type} {resource_id} was modified concurrently; reload and retry",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.CONCURRENT_MODIFICATION,
            details=details,
        )


class NotApprovedError(ContentFlowError):
    """Raised when publishing a draft that is not Approved"""

    def __init__(self, draft_id: Any, current_status: str):
        super().__init__(
            message=f"ContentDraft {draft_id} must be approved before publishing (status '{current_status}')",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.NOT_APPROVED,
            details={"draft_id": draft_id, "current_status": current_status},
        )


class ImmutableResourceError(ContentFlowError):
    """Raised when editing a resource that the workflow has locked"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.RESOURCE_LOCKED,
            details=details,
        )


class LimitExceededError(ContentFlowError):
    """Raised when a per-organization limit would be exceeded"""

    def __init__(self, limit: str, value: int):
        super().__init__(
            message=f"Organization limit '{limit}' of {value} reached",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.LIMIT_EXCEEDED,
            details={"limit": limit, "value": value},
        )


# ============================================================================
# Channel Delivery Exceptions
# ============================================================================


class DeliveryError(Exception):
    """Base class for failures reported by an external publish channel"""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TransientDeliveryError(DeliveryError):
    """Network error, rate limit or server error; safe to retry"""


class PermanentDeliveryError(DeliveryError):
    """Validation or authorization failure; retrying will not help"""
