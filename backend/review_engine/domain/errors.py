"""Domain Errors - Centralized Exception Hierarchy"""
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .models import ReviewWorkflow


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Actor lacks the role or assignment an action requires"""
    error_code = "PERMISSION_DENIED"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed (missing key fields, blank reason, ...)"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Review workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict - stored revision moved on"""
    error_code = "CONCURRENCY_CONFLICT"


class DuplicateWorkflowError(ConflictError):
    """An active workflow already exists for the natural key"""
    error_code = "DUPLICATE_WORKFLOW"


class InvalidTransitionError(ConflictError):
    """Action not legal from the workflow's current status"""
    error_code = "INVALID_TRANSITION"


class LockedError(DomainError):
    """Content edit attempted while the workflow holds the artifact locked"""
    error_code = "LOCKED"
    http_status = 423


class PartialCommitError(DomainError):
    """
    Record was written but its history entry was not.

    The state change is valid and visible; only the audit trail needs repair.
    ``workflow`` holds the committed record so callers can reconcile.
    """
    error_code = "PARTIAL_COMMIT"
    http_status = 207

    def __init__(
        self,
        message: str,
        workflow: Optional["ReviewWorkflow"] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details=details)
        self.workflow = workflow

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.workflow is not None:
            payload["workflow"] = self.workflow.model_dump(mode="json")
        return payload
